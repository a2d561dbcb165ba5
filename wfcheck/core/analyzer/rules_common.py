"""
Shared predicates used by more than one rule family.
"""

from typing import Any, List, Optional

from .lineage import ArtifactRole
from .pipeline_model import (
    ATTR_METHOD, ATTR_METRICS, ATTR_OUTCOME_IMBALANCED, ATTR_SEED,
    META_OUTCOME_IMBALANCED, META_STRICT_REPRODUCIBILITY, Operation, OperationKind,
)
from .rule_base import AnalysisContext


def outcome_imbalanced(ctx: AnalysisContext, op: Operation) -> bool:
    """Operation flag wins; otherwise fall back to the pipeline-level flag."""
    value = op.attr(ATTR_OUTCOME_IMBALANCED)
    if value is None:
        value = ctx.pipeline.meta(META_OUTCOME_IMBALANCED)
    return value is True


def is_seeded(ctx: AnalysisContext, op: Operation) -> bool:
    if op.attr(ATTR_SEED) is not None:
        return True
    return any(o.kind == OperationKind.SET_SEED for o in ctx.pipeline.before(op))


def is_resampling_scheme(op: Operation) -> bool:
    """DefineResample or anything the parser tagged as bootstrap."""
    if op.kind == OperationKind.DEFINE_RESAMPLE:
        return True
    method = op.attr(ATTR_METHOD)
    return isinstance(method, str) and method.lower() == "bootstrap"


def metric_names(op: Operation) -> List[str]:
    raw: Any = op.attr(ATTR_METRICS)
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    elif hasattr(raw, "keys"):
        raw = list(raw.keys())
    return [str(m).strip().lower() for m in raw if str(m).strip()]


def strict_reproducibility(ctx: AnalysisContext) -> bool:
    return ctx.pipeline.meta(META_STRICT_REPRODUCIBILITY) is True and not ctx.pipeline.is_empty


def estimation_inputs(ctx: AnalysisContext, op: Operation) -> List[str]:
    """Data an operation learns from: its data inputs, else whatever it consumes."""
    data = ctx.lineage.data_inputs(op)
    return data if data else list(op.input_ids)


def consumes_workflow(ctx: AnalysisContext, op: Operation) -> bool:
    lineage = ctx.lineage
    for aid in op.input_ids:
        if lineage.role(aid) == ArtifactRole.WORKFLOW:
            return True
        if any(lineage.role(a) == ArtifactRole.WORKFLOW for a in lineage.ancestors(aid)):
            return True
    return False


def last_before(ctx: AnalysisContext, op: Operation, kind: OperationKind) -> Optional[Operation]:
    prior = [o for o in ctx.pipeline.before(op) if o.kind == kind]
    return prior[-1] if prior else None


def first_after(ctx: AnalysisContext, op: Operation, kind: OperationKind) -> Optional[Operation]:
    for o in ctx.pipeline.after(op):
        if o.kind == kind:
            return o
    return None


def plain(value: Any) -> Any:
    """Read-only attribute values back to plain dicts/lists for comparison."""
    if hasattr(value, "items"):
        return {k: plain(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [plain(v) for v in value]
    return value
