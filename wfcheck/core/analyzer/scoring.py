"""
Scoring Engine — Findings → 0-100 Compliance Score
====================================================
Start at 100, deduct a fixed weight per finding by severity, clamp the
final total at 0. Clamping happens once, on the total, never per category.

  Critical −25 | Major −10 | Minor −5

Bands:
  100     → Perfect
  80-99   → Good
  60-79   → Acceptable
  < 60    → NeedsRevision

The deduction is a plain sum, so the score does not depend on finding order.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from .errors import InvalidSeverityWeightError
from .rule_base import Category, Finding, Severity

logger = logging.getLogger(__name__)

MAX_SCORE = 100

DEFAULT_WEIGHTS: Mapping[Severity, int] = MappingProxyType({
    Severity.CRITICAL: 25,
    Severity.MAJOR: 10,
    Severity.MINOR: 5,
})


class Band(str, Enum):
    PERFECT = "Perfect"
    GOOD = "Good"
    ACCEPTABLE = "Acceptable"
    NEEDS_REVISION = "NeedsRevision"


def band_for(score: int) -> Band:
    if score >= MAX_SCORE:
        return Band.PERFECT
    if score >= 80:
        return Band.GOOD
    if score >= 60:
        return Band.ACCEPTABLE
    return Band.NEEDS_REVISION


@dataclass(frozen=True)
class ScoreResult:
    score: int
    band: Band
    total_deduction: int
    by_severity: Dict[str, int] = field(default_factory=dict)
    by_category: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "band": self.band.value,
            "totalDeduction": self.total_deduction,
            "bySeverity": dict(self.by_severity),
            "byCategory": dict(self.by_category),
        }


def _coerce_weight(severity: Severity, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidSeverityWeightError(f"Weight for {severity.value} must be an integer, got {value!r}")
    if isinstance(value, str):
        try:
            value = int(value.strip())
        except ValueError:
            raise InvalidSeverityWeightError(
                f"Weight for {severity.value} must be an integer, got {value!r}"
            ) from None
    if not isinstance(value, int):
        raise InvalidSeverityWeightError(f"Weight for {severity.value} must be an integer, got {value!r}")
    if value < 0:
        raise InvalidSeverityWeightError(f"Weight for {severity.value} must be >= 0, got {value}")
    return value


class ScoringEngine:
    """Validates its deduction table once, at construction."""

    def __init__(self, weights: Optional[Mapping[Union[Severity, str], Any]] = None):
        raw = dict(DEFAULT_WEIGHTS if weights is None else weights)
        table: Dict[Severity, int] = {}
        for key, value in raw.items():
            try:
                severity = Severity(key)
            except ValueError:
                raise InvalidSeverityWeightError(f"Unknown severity in weight table: {key!r}") from None
            table[severity] = _coerce_weight(severity, value)
        missing = [s.value for s in Severity if s not in table]
        if missing:
            raise InvalidSeverityWeightError(f"Weight table missing severities: {', '.join(missing)}")
        self.weights: Mapping[Severity, int] = MappingProxyType(table)

    @classmethod
    def from_settings(cls, settings) -> "ScoringEngine":
        return cls({
            Severity.CRITICAL: settings.WEIGHT_CRITICAL,
            Severity.MAJOR: settings.WEIGHT_MAJOR,
            Severity.MINOR: settings.WEIGHT_MINOR,
        })

    def score(self, findings: Iterable[Finding]) -> ScoreResult:
        by_severity = {s.value: 0 for s in Severity}
        by_category = {c.value: 0 for c in Category}
        total = 0
        for f in findings:
            weight = self.weights[f.severity]
            total += weight
            by_severity[f.severity.value] += weight
            by_category[f.category.value] += weight
        value = max(0, MAX_SCORE - total)
        return ScoreResult(
            score=value,
            band=band_for(value),
            total_deduction=total,
            by_severity=by_severity,
            by_category=by_category,
        )

    def to_dict(self) -> Dict[str, int]:
        return {s.value: w for s, w in self.weights.items()}
