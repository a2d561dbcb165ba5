"""
Compliance Analyzer — Single Entry Point
==========================================
Wires the stages into one call:

  Pipeline → LineageTracker → RuleEngine (catalog) → ScoringEngine → ComplianceReport

Fatal errors (malformed pipeline, bad configuration) propagate as typed
exceptions; a report is only ever returned whole. Rule failures are
recoverable and ride along as report diagnostics.
"""

import logging
import time
from typing import Any, Dict, Mapping, Optional, Union

from .pipeline_model import Pipeline
from .report import ComplianceReport
from .rule_base import RuleCatalog
from .rule_engine import RuleEngine
from .scoring import ScoringEngine

logger = logging.getLogger(__name__)


class ComplianceAnalyzer:
    """Stateless between calls; one instance can serve concurrent callers."""

    def __init__(
        self,
        engine: Optional[RuleEngine] = None,
        scoring: Optional[ScoringEngine] = None,
    ):
        self.engine = engine or RuleEngine()
        self.scoring = scoring or ScoringEngine()

    @classmethod
    def from_settings(cls, settings, catalog: Optional[RuleCatalog] = None) -> "ComplianceAnalyzer":
        """Build from application Settings. Raises on invalid weights."""
        return cls(
            engine=RuleEngine(
                catalog=catalog,
                parallel=settings.PARALLEL_RULES,
                max_workers=settings.RULE_WORKERS,
            ),
            scoring=ScoringEngine.from_settings(settings),
        )

    @property
    def catalog(self) -> RuleCatalog:
        return self.engine.catalog

    def analyze(self, pipeline: Union[Pipeline, Mapping[str, Any]]) -> ComplianceReport:
        timing: Dict[str, float] = {}
        t0 = time.perf_counter()

        if not isinstance(pipeline, Pipeline):
            pipeline = Pipeline.from_dict(pipeline)
        timing["load_ms"] = round((time.perf_counter() - t0) * 1000, 2)

        t1 = time.perf_counter()
        result = self.engine.evaluate(pipeline)
        timing["rules_ms"] = round((time.perf_counter() - t1) * 1000, 2)

        t2 = time.perf_counter()
        scored = self.scoring.score(result.findings)
        timing["scoring_ms"] = round((time.perf_counter() - t2) * 1000, 2)
        timing["total_ms"] = round((time.perf_counter() - t0) * 1000, 2)

        report = ComplianceReport(
            findings=result.findings,
            score=scored.score,
            band=scored.band,
            diagnostics=result.diagnostics,
            deductions=scored,
            catalog_version=len(self.engine.catalog),
            pipeline_name=pipeline.name,
            timing=timing,
        )

        logger.info(
            f"Analyzed pipeline '{pipeline.name or 'unnamed'}': "
            f"{len(pipeline)} ops, {len(report.findings)} findings, "
            f"score={report.score} ({report.band.value}), "
            f"{len(report.diagnostics)} rule errors, {timing['total_ms']}ms"
        )
        if report.diagnostics:
            logger.warning(
                f"Partial report, rules failed: "
                f"{', '.join(d.rule_id for d in report.diagnostics)}"
            )
        return report
