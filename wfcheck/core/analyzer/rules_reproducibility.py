"""
Reproducibility Rules (RP-001 → RP-005)
=========================================
RP-001 and RP-003 inspect individual operations. RP-002, RP-004 and RP-005
are whole-pipeline presence checks and only run when the parser marks the
pipeline with strictReproducibility=true; a parsed fragment cannot be
expected to carry a lockfile or a session dump.

Rule Catalog:
  RP-001: Randomized operation without a seed                (Major)
  RP-002: No namespace-preference marker                      (Minor)
  RP-003: Hard-coded absolute path in I/O                     (Minor)
  RP-004: No dependency lock referenced                       (Minor)
  RP-005: Pipeline does not end by capturing its environment  (Minor)
"""

import re
from typing import Any, Iterator

from .pipeline_model import (
    ATTR_IO, ATTR_LITERAL_PATH, ATTR_MARKER, ATTR_PATH, ATTR_RANDOMIZED,
    MARKER_NAMESPACE, MARKER_SESSION, META_DEPENDENCY_LOCK, Operation, OperationKind,
)
from .rule_base import AnalysisContext, Category, Match, Severity, match, rule
from .rules_common import is_resampling_scheme, is_seeded, strict_reproducibility

_IO_MODES = {"read", "write"}
_ABSOLUTE_PATH = re.compile(r"^(/|~|[A-Za-z]:[\\/]|\\\\)")


def _pipeline_label(ctx: AnalysisContext) -> str:
    return f"pipeline:{ctx.pipeline.name or 'unnamed'}"


def _is_randomized(op: Operation) -> bool:
    # Resampling schemes are RS-004's concern
    if is_resampling_scheme(op):
        return False
    return op.kind == OperationKind.SPLIT or op.flag(ATTR_RANDOMIZED)


@rule("RP-001", Category.REPRODUCIBILITY, Severity.MAJOR,
      "Randomized step without a seed")
def unseeded_randomness(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.operations:
        if _is_randomized(op) and not is_seeded(ctx, op):
            yield match(op)


@rule("RP-002", Category.REPRODUCIBILITY, Severity.MINOR,
      "No namespace preference declared")
def missing_namespace_preference(ctx: AnalysisContext) -> Iterator[Match]:
    if not strict_reproducibility(ctx):
        return
    if not any(op.attr(ATTR_MARKER) == MARKER_NAMESPACE for op in ctx.pipeline.operations):
        yield match(None, _pipeline_label(ctx))


def _literal_path(op: Operation) -> Any:
    path = op.attr(ATTR_PATH)
    if op.flag(ATTR_LITERAL_PATH):
        return path if path is not None else True
    if isinstance(path, str) and _ABSOLUTE_PATH.match(path):
        return path
    return None


@rule("RP-003", Category.REPRODUCIBILITY, Severity.MINOR,
      "Hard-coded file path")
def hard_coded_path(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.operations:
        io = op.attr(ATTR_IO)
        if not (isinstance(io, str) and io.lower() in _IO_MODES):
            continue
        path = _literal_path(op)
        if path is True:
            yield match(op)
        elif path is not None:
            yield match(op, f"path:{path}")


@rule("RP-004", Category.REPRODUCIBILITY, Severity.MINOR,
      "No dependency lock")
def missing_dependency_lock(ctx: AnalysisContext) -> Iterator[Match]:
    if strict_reproducibility(ctx) and not ctx.pipeline.meta(META_DEPENDENCY_LOCK):
        yield match(None, _pipeline_label(ctx))


@rule("RP-005", Category.REPRODUCIBILITY, Severity.MINOR,
      "Session environment not captured")
def missing_session_capture(ctx: AnalysisContext) -> Iterator[Match]:
    if not strict_reproducibility(ctx):
        return
    last = ctx.pipeline.operations[-1]
    if last.attr(ATTR_MARKER) != MARKER_SESSION:
        yield match(None, _pipeline_label(ctx), last.label)


RULES = (
    unseeded_randomness,
    missing_namespace_preference,
    hard_coded_path,
    missing_dependency_lock,
    missing_session_capture,
)
