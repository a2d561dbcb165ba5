"""
Rule Engine — Runs the Catalog Against One Pipeline
=====================================================
Builds the lineage graph, then evaluates every rule independently.

  - Rules never see each other's output, so they can run in a thread pool
    with no locking: each worker fills its own finding list.
  - A rule that raises is isolated: the error becomes a RuleEvaluationError
    diagnostic and the remaining rules still run.
  - Lineage failures (dangling references, duplicate artifacts) are fatal
    and propagate before any rule runs.
  - Findings are returned in stable order: operation index, then rule id.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .errors import RuleEvaluationError
from .lineage import LineageGraph, LineageTracker
from .pipeline_model import Pipeline
from .rule_base import AnalysisContext, Finding, Rule, RuleCatalog
from .rule_catalog import get_default_catalog

logger = logging.getLogger(__name__)


@dataclass
class EngineResult:
    findings: List[Finding] = field(default_factory=list)
    diagnostics: List[RuleEvaluationError] = field(default_factory=list)
    lineage: Optional[LineageGraph] = None


class RuleEngine:
    """
    Evaluates a RuleCatalog against pipelines.
    Holds no per-run state; one instance can serve concurrent requests.
    """

    def __init__(
        self,
        catalog: Optional[RuleCatalog] = None,
        parallel: bool = False,
        max_workers: int = 4,
    ):
        self.catalog = catalog if catalog is not None else get_default_catalog()
        self.parallel = parallel
        self.max_workers = max(1, max_workers)
        self._tracker = LineageTracker()

    def evaluate(self, pipeline: Pipeline) -> EngineResult:
        lineage = self._tracker.build(pipeline)
        ctx = AnalysisContext(pipeline=pipeline, lineage=lineage)

        rules = list(self.catalog)
        if self.parallel and len(rules) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                outcomes = list(pool.map(lambda r: self._run_rule(r, ctx), rules))
        else:
            outcomes = [self._run_rule(r, ctx) for r in rules]

        result = EngineResult(lineage=lineage)
        for findings, error in outcomes:
            result.findings.extend(findings)
            if error is not None:
                result.diagnostics.append(error)
        result.findings.sort(key=lambda f: f.sort_key)
        return result

    @staticmethod
    def _run_rule(
        rule: Rule, ctx: AnalysisContext,
    ) -> Tuple[List[Finding], Optional[RuleEvaluationError]]:
        started = time.perf_counter()
        try:
            findings = rule.evaluate(ctx)
        except Exception as e:
            logger.error(f"Rule {rule.rule_id} failed: {e}", exc_info=True)
            return [], RuleEvaluationError(rule.rule_id, e)
        logger.debug(
            f"{rule.rule_id}: {len(findings)} finding(s) in "
            f"{(time.perf_counter() - started) * 1000:.2f}ms"
        )
        return findings, None
