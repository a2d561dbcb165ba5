"""
Evaluation Metric Rules (ME-001 → ME-005)
===========================================
All Major. These read the metric set and model mode the parser attached to
Evaluate operations; metric names are matched case-insensitively.

Rule Catalog:
  ME-001: Single balance-insensitive metric on an imbalanced outcome
  ME-002: Metric family does not match the declared model mode
  ME-003: Probabilistic classifier evaluated without a calibration metric
  ME-004: Metrics reported without variance or interval estimates
  ME-005: Models compared on different resample sets
"""

from typing import Iterator, Set

from .pipeline_model import (
    ATTR_COMPARISON, ATTR_INTERVAL, ATTR_MODE, ATTR_PROBABILISTIC, ATTR_STD_ERR,
    ATTR_VARIANCE, Operation, OperationKind,
)
from .rule_base import AnalysisContext, Category, Match, Severity, match, rule
from .rules_common import metric_names, outcome_imbalanced

# ── Metric vocabulary ──
BALANCE_INSENSITIVE_METRICS = {"accuracy", "acc", "error_rate", "misclassification_rate"}

REGRESSION_METRICS = {
    "rmse", "mse", "mae", "mape", "smape", "rsq", "rsq_trad", "r2", "r_squared",
    "huber_loss", "ccc", "rpd", "rpiq", "msd", "iic",
}

CLASSIFICATION_METRICS = {
    "accuracy", "acc", "bal_accuracy", "balanced_accuracy", "roc_auc", "pr_auc",
    "f1", "f_meas", "precision", "recall", "sensitivity", "specificity", "kap",
    "kappa", "mcc", "ppv", "npv", "j_index", "detection_prevalence",
    "brier_class", "brier_score", "mn_log_loss", "log_loss", "gain_capture",
    "error_rate",
}

CALIBRATION_METRICS = {
    "brier_class", "brier_score", "mn_log_loss", "log_loss", "ece",
    "calibration", "calibration_slope", "calibration_intercept",
}

MODE_CLASSIFICATION = "classification"
MODE_REGRESSION = "regression"


def _mode(op: Operation) -> str:
    value = op.attr(ATTR_MODE)
    return value.lower() if isinstance(value, str) else ""


@rule("ME-001", Category.EVALUATION, Severity.MAJOR,
      "Single balance-insensitive metric on imbalanced outcome")
def single_insensitive_metric(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.of_kind(OperationKind.EVALUATE):
        metrics = set(metric_names(op))
        if len(metrics) == 1 and metrics <= BALANCE_INSENSITIVE_METRICS and outcome_imbalanced(ctx, op):
            yield match(op, *(f"metric:{m}" for m in sorted(metrics)))


@rule("ME-002", Category.EVALUATION, Severity.MAJOR,
      "Metric does not match model mode")
def metric_mode_mismatch(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.of_kind(OperationKind.EVALUATE):
        mode = _mode(op)
        metrics = set(metric_names(op))
        wrong: Set[str] = set()
        if mode == MODE_CLASSIFICATION:
            wrong = metrics & REGRESSION_METRICS
        elif mode == MODE_REGRESSION:
            wrong = metrics & CLASSIFICATION_METRICS
        if wrong:
            yield match(op, f"mode:{mode}", *(f"metric:{m}" for m in sorted(wrong)))


@rule("ME-003", Category.EVALUATION, Severity.MAJOR,
      "No calibration metric for probabilistic classifier")
def missing_calibration_metric(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.of_kind(OperationKind.EVALUATE):
        if _mode(op) != MODE_CLASSIFICATION or not op.flag(ATTR_PROBABILISTIC):
            continue
        if not set(metric_names(op)) & CALIBRATION_METRICS:
            yield match(op)


@rule("ME-004", Category.EVALUATION, Severity.MAJOR,
      "Metrics reported without uncertainty")
def missing_uncertainty(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.of_kind(OperationKind.EVALUATE):
        if not metric_names(op):
            continue
        if not any(op.attr(key) for key in (ATTR_INTERVAL, ATTR_VARIANCE, ATTR_STD_ERR)):
            yield match(op)


def _is_comparison(ctx: AnalysisContext, op: Operation) -> bool:
    if op.flag(ATTR_COMPARISON):
        return True
    if op.kind not in (OperationKind.SELECT_BEST, OperationKind.EVALUATE):
        return False
    tunes = {
        i for i in ctx.lineage.upstream_operations(op)
        if ctx.pipeline.operation(i).kind == OperationKind.TUNE
    }
    return len(tunes) > 1


@rule("ME-005", Category.EVALUATION, Severity.MAJOR,
      "Models compared on different resamples")
def comparison_on_different_resamples(ctx: AnalysisContext) -> Iterator[Match]:
    for op in ctx.pipeline.operations:
        if not _is_comparison(ctx, op):
            continue
        resamples = set()
        for aid in op.input_ids:
            resamples |= ctx.lineage.resample_ancestors(aid)
        if len(resamples) > 1:
            yield match(op, *(f"artifact:{aid}" for aid in sorted(resamples)))


RULES = (
    single_insensitive_metric,
    metric_mode_mismatch,
    missing_calibration_metric,
    missing_uncertainty,
    comparison_on_different_resamples,
)
