"""
Resampling Rules (RS-001 → RS-005)
====================================
Rule Catalog:
  RS-001: Unstratified split/resample on an imbalanced outcome   (Major)
  RS-002: Predictions/evaluation on the exact data the model fit  (Critical)
  RS-003: Tuning resamples reused for final evaluation            (Critical)
  RS-004: Resampling scheme created without a seed                (Major)
  RS-005: One resample set shared by independent selection chains (Critical)
"""

from typing import Dict, Iterator, List

from .lineage import ArtifactRole
from .pipeline_model import ATTR_MODEL_SELECTION, ATTR_STRATIFIED, Operation, OperationKind
from .rule_base import AnalysisContext, Category, Match, Severity, match, rule
from .rules_common import is_resampling_scheme, is_seeded, last_before, outcome_imbalanced


@rule("RS-001", Category.RESAMPLING, Severity.MAJOR,
      "Unstratified split on imbalanced outcome")
def unstratified_split(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.of_kind(OperationKind.SPLIT, OperationKind.DEFINE_RESAMPLE):
        if outcome_imbalanced(ctx, op) and not op.flag(ATTR_STRATIFIED):
            yield match(op)


@rule("RS-002", Category.RESAMPLING, Severity.CRITICAL,
      "Evaluation on training data")
def evaluated_on_fit_data(ctx: AnalysisContext) -> Iterator[Match]:
    lineage = ctx.lineage
    for op in ctx.pipeline.of_kind(OperationKind.PREDICT, OperationKind.EVALUATE):
        fit = last_before(ctx, op, OperationKind.FIT)
        if fit is None:
            continue
        shared = sorted(set(lineage.data_inputs(op)) & set(lineage.data_inputs(fit)))
        if shared:
            yield match(op, fit, *(f"artifact:{aid}" for aid in shared))


@rule("RS-003", Category.RESAMPLING, Severity.CRITICAL,
      "Tuning resamples reused for evaluation")
def tuning_resamples_reused(ctx: AnalysisContext) -> Iterator[Match]:
    pipeline = ctx.pipeline
    for aid, art in sorted(ctx.lineage.artifacts.items()):
        if art.role != ArtifactRole.RESAMPLE:
            continue
        users = [pipeline.operation(i) for i in ctx.lineage.consumers(aid)]
        tunes = [o for o in users if o.kind == OperationKind.TUNE]
        if not tunes:
            continue
        for ev in (o for o in users if o.kind == OperationKind.EVALUATE):
            for tune in tunes:
                if tune.id >= ev.id:
                    continue
                if any(o.kind == OperationKind.SPLIT for o in pipeline.between(tune, ev)):
                    continue
                yield match(ev, tune, f"artifact:{aid}")
                break


@rule("RS-004", Category.RESAMPLING, Severity.MAJOR,
      "Resampling without a seed")
def unseeded_resampling(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.operations:
        if is_resampling_scheme(op) and not is_seeded(ctx, op):
            yield match(op)


def _selection_chains(ctx: AnalysisContext, ops: List[Operation]) -> List[List[Operation]]:
    """Group selection operations into chains linked by lineage."""
    upstream: Dict[int, frozenset] = {
        op.id: ctx.lineage.upstream_operations(op) for op in ops
    }
    chains: List[List[Operation]] = []
    for op in ops:
        for chain in chains:
            if any(o.id in upstream[op.id] or op.id in upstream[o.id] for o in chain):
                chain.append(op)
                break
        else:
            chains.append([op])
    return chains


@rule("RS-005", Category.RESAMPLING, Severity.CRITICAL,
      "Resamples shared across independent model selections")
def resamples_shared_across_selections(ctx: AnalysisContext) -> Iterator[Match]:
    pipeline = ctx.pipeline
    for aid, art in sorted(ctx.lineage.artifacts.items()):
        if art.role != ArtifactRole.RESAMPLE:
            continue
        selectors = [
            o for o in (pipeline.operation(i) for i in ctx.lineage.consumers(aid))
            if o.kind == OperationKind.TUNE or o.flag(ATTR_MODEL_SELECTION)
        ]
        chains = _selection_chains(ctx, selectors)
        if len(chains) > 1:
            heads = [chain[0] for chain in chains]
            yield match(heads[1], *heads, f"artifact:{aid}")


RULES = (
    unstratified_split,
    evaluated_on_fit_data,
    tuning_resamples_reused,
    unseeded_resampling,
    resamples_shared_across_selections,
)
