"""
Rule Base — Findings, Rules and the Frozen Catalog
====================================================
A Rule is a named, versioned predicate over an AnalysisContext (pipeline +
lineage). Its check function yields Match objects; the Rule turns each match
into a Finding stamped with its own id, severity and category.

Rules are stateless and idempotent. The catalog that holds them is built
once and never mutated: adding or removing rules produces a new catalog.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import (
    Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple,
)

from .errors import CatalogError
from .lineage import LineageGraph
from .pipeline_model import Operation, Pipeline, SourceLocation


class Severity(str, Enum):
    CRITICAL = "Critical"
    MAJOR = "Major"
    MINOR = "Minor"


class Category(str, Enum):
    DATA_LEAKAGE = "DataLeakage"
    RESAMPLING = "Resampling"
    WORKFLOW = "Workflow"
    EVALUATION = "Evaluation"
    REPRODUCIBILITY = "Reproducibility"


@dataclass(frozen=True)
class AnalysisContext:
    """What every rule sees: the immutable pipeline and its lineage graph."""
    pipeline: Pipeline
    lineage: LineageGraph


@dataclass(frozen=True)
class Match:
    """One raw rule hit, before the rule stamps it into a Finding."""
    anchor: Optional[Operation]
    evidence: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Finding:
    rule_id: str
    severity: Severity
    category: Category
    location: SourceLocation
    evidence: Tuple[str, ...]
    operation_id: Optional[int] = None  # None for whole-pipeline findings
    title: str = ""

    @property
    def sort_key(self) -> Tuple[float, str, Tuple[str, ...]]:
        position = math.inf if self.operation_id is None else self.operation_id
        return (position, self.rule_id, self.evidence)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "severity": self.severity.value,
            "category": self.category.value,
            "location": self.location.to_dict(),
            "evidence": list(self.evidence),
            "title": self.title,
        }


CheckFn = Callable[[AnalysisContext], Iterable[Match]]


def match(anchor: Optional[Operation], *evidence: Any) -> Match:
    """Build a Match; Operations in evidence render as op#N, strings pass through."""
    labels = []
    for item in evidence:
        if isinstance(item, Operation):
            labels.append(item.label)
        else:
            labels.append(str(item))
    if anchor is not None and anchor.label not in labels:
        labels.insert(0, anchor.label)
    return Match(anchor=anchor, evidence=tuple(dict.fromkeys(labels)))


@dataclass(frozen=True)
class Rule:
    rule_id: str
    category: Category
    severity: Severity
    title: str
    check: CheckFn = field(compare=False, repr=False)
    version: int = 1

    def evaluate(self, ctx: AnalysisContext) -> List[Finding]:
        findings = []
        for m in self.check(ctx):
            findings.append(Finding(
                rule_id=self.rule_id,
                severity=self.severity,
                category=self.category,
                location=m.anchor.location if m.anchor is not None else SourceLocation(),
                evidence=m.evidence,
                operation_id=m.anchor.id if m.anchor is not None else None,
                title=self.title,
            ))
        return findings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ruleId": self.rule_id,
            "category": self.category.value,
            "severity": self.severity.value,
            "title": self.title,
            "version": self.version,
        }


def rule(rule_id: str, category: Category, severity: Severity, title: str, version: int = 1):
    """Decorator turning a check function into a Rule instance."""
    def wrap(fn: CheckFn) -> Rule:
        return Rule(
            rule_id=rule_id, category=category, severity=severity,
            title=title, check=fn, version=version,
        )
    return wrap


class RuleCatalog:
    """
    Read-only registry of rules, keyed by id, iterated in id order.
    """

    def __init__(self, rules: Sequence[Rule]):
        by_id: Dict[str, Rule] = {}
        for r in rules:
            if r.rule_id in by_id:
                raise CatalogError(f"Duplicate rule id {r.rule_id}")
            by_id[r.rule_id] = r
        self._rules: Mapping[str, Rule] = MappingProxyType(
            {rid: by_id[rid] for rid in sorted(by_id)}
        )

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def get(self, rule_id: str) -> Rule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise CatalogError(f"Unknown rule id {rule_id}") from None

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(self._rules)

    def by_category(self, category: Category) -> List[Rule]:
        return [r for r in self._rules.values() if r.category == category]

    def without(self, rule_ids: Iterable[str]) -> "RuleCatalog":
        drop = set(rule_ids)
        unknown = drop - set(self._rules)
        if unknown:
            raise CatalogError(f"Cannot disable unknown rules: {', '.join(sorted(unknown))}")
        return RuleCatalog([r for r in self._rules.values() if r.rule_id not in drop])

    def extended(self, rules: Iterable[Rule]) -> "RuleCatalog":
        return RuleCatalog([*self._rules.values(), *rules])

    def to_list(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self._rules.values()]
