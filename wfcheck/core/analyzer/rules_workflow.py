"""
Workflow Rules (WF-001 → WF-003)
==================================
Rule Catalog:
  WF-001: Preprocessor and model fit separately, no workflow wrapper (Minor)
  WF-002: Train and held-out branches transformed differently        (Major)
  WF-003: Tuned parameters never finalized before the final fit      (Major)
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple

from .lineage import ArtifactRole, ProvenanceKind
from .pipeline_model import ATTR_PARAMS, ATTR_WORKFLOW, Operation, OperationKind
from .rule_base import AnalysisContext, Category, Match, Severity, match, rule
from .rules_common import consumes_workflow, first_after, plain


def _wrapped_between(ctx: AnalysisContext, start: Operation, end: Operation) -> bool:
    return any(
        o.kind == OperationKind.FINALIZE_WORKFLOW or o.flag(ATTR_WORKFLOW)
        for o in ctx.pipeline.between(start, end)
    )


def _same_chain(ctx: AnalysisContext, prep: Operation, fit: Operation) -> bool:
    lineage = ctx.lineage
    chain = set(prep.output_ids) | set(lineage.data_inputs(prep))
    for aid in fit.input_ids:
        if aid in chain or lineage.ancestors(aid) & chain:
            return True
    return False


@rule("WF-001", Category.WORKFLOW, Severity.MINOR,
      "Preprocessing and model not combined in a workflow")
def missing_workflow_wrapper(ctx: AnalysisContext) -> Iterator[Match]:
    definitions = ctx.pipeline.of_kind(OperationKind.DEFINE_PREPROCESSOR)
    if not definitions:
        return
    for fit in ctx.pipeline.of_kind(OperationKind.FIT):
        if fit.flag(ATTR_WORKFLOW) or consumes_workflow(ctx, fit):
            continue
        for prep in definitions:
            if prep.id >= fit.id:
                continue
            if _same_chain(ctx, prep, fit) and not _wrapped_between(ctx, prep, fit):
                yield match(fit, prep)
                break


_HELD_OUT = (ProvenanceKind.TEST, ProvenanceKind.VALIDATION)


def _transform_signature(ctx: AnalysisContext, op: Operation) -> Tuple[Tuple[str, ...], Any]:
    preprocessors = tuple(sorted(ctx.lineage.inputs_of_role(op, ArtifactRole.PREPROCESSOR)))
    return preprocessors, plain(op.attr(ATTR_PARAMS))


@rule("WF-002", Category.WORKFLOW, Severity.MAJOR,
      "Inconsistent preprocessing between train and held-out data")
def inconsistent_transforms(ctx: AnalysisContext) -> Iterator[Match]:
    lineage = ctx.lineage
    groups: Dict[Optional[int], Dict[str, List[Operation]]] = {}
    for op in ctx.pipeline.of_kind(OperationKind.APPLY_PREPROCESSOR):
        for aid in lineage.data_inputs(op):
            origin = lineage.split_origin(aid)
            if origin is None:
                continue
            branch = lineage.branch(aid)
            side = "train" if branch == ProvenanceKind.TRAIN else (
                "held_out" if branch in _HELD_OUT else None
            )
            if side is None:
                continue
            bucket = groups.setdefault(origin, {"train": [], "held_out": []})
            if op not in bucket[side]:
                bucket[side].append(op)

    for origin in sorted(groups):
        bucket = groups[origin]
        if not bucket["train"] or not bucket["held_out"]:
            continue
        reference = bucket["train"][0]
        expected = _transform_signature(ctx, reference)
        for held_out in bucket["held_out"]:
            if _transform_signature(ctx, held_out) != expected:
                yield match(held_out, reference)


@rule("WF-003", Category.WORKFLOW, Severity.MAJOR,
      "Tuned workflow not finalized before fitting")
def tuning_not_finalized(ctx: AnalysisContext) -> Iterator[Match]:
    pipeline = ctx.pipeline
    for select in pipeline.of_kind(OperationKind.SELECT_BEST):
        tune = next(
            (o for o in reversed(pipeline.before(select)) if o.kind == OperationKind.TUNE),
            None,
        )
        if tune is None:
            continue
        fit = first_after(ctx, select, OperationKind.FIT)
        if fit is None:
            continue
        if not any(o.kind == OperationKind.FINALIZE_WORKFLOW for o in pipeline.between(select, fit)):
            yield match(fit, tune, select)


RULES = (
    missing_workflow_wrapper,
    inconsistent_transforms,
    tuning_not_finalized,
)
