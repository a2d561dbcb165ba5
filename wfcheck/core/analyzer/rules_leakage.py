"""
Data Leakage Rules (DL-001 → DL-005)
======================================
All Critical. Leakage means held-out information reached a step that
learns from data.

Rule Catalog:
  DL-001: Preprocessor defined on pre-split or test data
  DL-002: Preprocessor estimated (prepped) on pre-split or test data
  DL-003: Target encoding outside a resampling/tuning scope
  DL-004: Feature selection performed on test data
  DL-005: Preprocessing input merges in pre-split or test rows
"""

from typing import Iterator

from .lineage import ArtifactRole, ProvenanceKind
from .pipeline_model import (
    ATTR_FEATURE_SELECTION, ATTR_TARGET_ENCODING, Operation, OperationKind,
)
from .rule_base import AnalysisContext, Category, Match, Severity, match, rule
from .rules_common import estimation_inputs

_NON_TRAIN = (ProvenanceKind.FULL, ProvenanceKind.TEST)
_PREPROCESSING = (OperationKind.DEFINE_PREPROCESSOR, OperationKind.PREP_PREPROCESSOR)


def _fit_on_non_train(ctx: AnalysisContext, kind: OperationKind) -> Iterator[Match]:
    for op in ctx.pipeline.of_kind(kind):
        offending = []
        for aid in estimation_inputs(ctx, op):
            branch = ctx.lineage.branch(aid)
            if branch in _NON_TRAIN:
                offending.append(f"artifact:{aid}")
                offending.append(f"provenance:{branch.value}")
        if offending:
            yield match(op, *offending)


@rule("DL-001", Category.DATA_LEAKAGE, Severity.CRITICAL,
      "Preprocessor defined on non-training data")
def preprocessor_defined_on_non_train(ctx: AnalysisContext) -> Iterator[Match]:
    return _fit_on_non_train(ctx, OperationKind.DEFINE_PREPROCESSOR)


@rule("DL-002", Category.DATA_LEAKAGE, Severity.CRITICAL,
      "Preprocessor estimated on non-training data")
def preprocessor_prepped_on_non_train(ctx: AnalysisContext) -> Iterator[Match]:
    return _fit_on_non_train(ctx, OperationKind.PREP_PREPROCESSOR)


def _inside_resampling(ctx: AnalysisContext, op: Operation) -> bool:
    lineage = ctx.lineage
    # Defined on an analysis set of a resample already
    if any(lineage.resample_ancestors(aid) for aid in op.input_ids):
        return True
    downstream = set(op.output_ids)
    for aid in op.output_ids:
        downstream |= lineage.descendants(aid)
    for consumer in ctx.pipeline.after(op):
        if not downstream.intersection(consumer.input_ids):
            continue
        if consumer.kind == OperationKind.TUNE:
            return True
        if any(lineage.role(aid) == ArtifactRole.RESAMPLE for aid in consumer.input_ids):
            return True
    return False


@rule("DL-003", Category.DATA_LEAKAGE, Severity.CRITICAL,
      "Target encoding outside resampling")
def target_encoding_outside_resampling(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.of_kind(OperationKind.DEFINE_PREPROCESSOR):
        if op.flag(ATTR_TARGET_ENCODING) and not _inside_resampling(ctx, op):
            yield match(op)


@rule("DL-004", Category.DATA_LEAKAGE, Severity.CRITICAL,
      "Feature selection on test data")
def feature_selection_on_test(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.operations:
        if not op.flag(ATTR_FEATURE_SELECTION):
            continue
        tainted = [
            f"artifact:{aid}" for aid in op.input_ids
            if ProvenanceKind.TEST in ctx.lineage.branches(aid)
        ]
        if tainted:
            yield match(op, *tainted)


@rule("DL-005", Category.DATA_LEAKAGE, Severity.CRITICAL,
      "Preprocessing on data merged with held-out rows")
def preprocessing_on_merged_data(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.of_kind(*_PREPROCESSING):
        offending = []
        for aid in estimation_inputs(ctx, op):
            # Primary-branch leaks belong to DL-001/DL-002
            if ctx.lineage.branch(aid) in _NON_TRAIN:
                continue
            leaked = sorted(b.value for b in ctx.lineage.branches(aid) if b in _NON_TRAIN)
            if leaked:
                offending.append(f"artifact:{aid}")
                offending.extend(f"provenance:{b}" for b in leaked)
        if offending:
            yield match(op, *offending)


RULES = (
    preprocessor_defined_on_non_train,
    preprocessor_prepped_on_non_train,
    target_encoding_outside_resampling,
    feature_selection_on_test,
    preprocessing_on_merged_data,
)
