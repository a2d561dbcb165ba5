"""
Compliance Report — Terminal Artifact of an Analysis Run
==========================================================
Wire form (required fields first, extras after):

  {
    "findings": [{"ruleId", "severity", "category", "location", "evidence", "title"}],
    "score": 0-100,
    "band": "Perfect" | "Good" | "Acceptable" | "NeedsRevision",
    "diagnostics": [{"ruleId", "error", "message"}],
    "counts": {"bySeverity": {...}, "byCategory": {...}, "total": n},
    "deductions": {...},
    "catalogVersion": n,
    "pipeline": name | null
  }

Stage timings ride along on the object but never in to_dict(), so the same
pipeline always serializes to the same bytes.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import RuleEvaluationError
from .rule_base import Category, Finding, Severity
from .scoring import Band, ScoreResult


@dataclass
class ComplianceReport:
    findings: List[Finding]
    score: int
    band: Band
    diagnostics: List[RuleEvaluationError] = field(default_factory=list)
    deductions: Optional[ScoreResult] = None
    catalog_version: int = 0
    pipeline_name: Optional[str] = None
    # Wall-clock stage timings for this run; kept out of the wire form
    timing: Dict[str, float] = field(default_factory=dict, compare=False)

    @property
    def is_partial(self) -> bool:
        """True when at least one rule failed and its findings are missing."""
        return bool(self.diagnostics)

    def counts(self) -> Dict[str, Any]:
        by_severity = {s.value: 0 for s in Severity}
        by_category = {c.value: 0 for c in Category}
        for f in self.findings:
            by_severity[f.severity.value] += 1
            by_category[f.category.value] += 1
        return {
            "bySeverity": by_severity,
            "byCategory": by_category,
            "total": len(self.findings),
        }

    def rule_ids(self) -> List[str]:
        return sorted({f.rule_id for f in self.findings})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "findings": [f.to_dict() for f in self.findings],
            "score": self.score,
            "band": self.band.value,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "counts": self.counts(),
            "deductions": self.deductions.to_dict() if self.deductions else {},
            "catalogVersion": self.catalog_version,
            "pipeline": self.pipeline_name,
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)
