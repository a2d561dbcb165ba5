"""
Workflow Compliance Analyzer — Core Module
============================================
Rule-based static analysis of modeling pipelines: flags data leakage,
resampling violations, workflow gaps, evaluation mistakes and
reproducibility gaps, then reduces the findings to a 0-100 score.

Components:
  ┌──────────────────────────────────────────────────────┐
  │ Pipeline / Operation — parsed pipeline (immutable)   │
  │ LineageTracker       — artifact DAG + provenance     │
  │ RuleCatalog          — 23 rules, frozen registry     │
  │ RuleEngine           — isolated, optional parallel   │
  │ ScoringEngine        — weighted deductions → band    │
  │ ComplianceReport     — deterministic wire form       │
  │ ComplianceAnalyzer   — single entry point            │
  │ ReportStore          — optional SQLAlchemy storage   │
  └──────────────────────────────────────────────────────┘

Usage:
  from wfcheck.core.analyzer import ComplianceAnalyzer, Pipeline
  report = ComplianceAnalyzer().analyze(Pipeline.from_dict(payload))
  print(report.to_json())
"""

from .errors import (
    ComplianceError,
    PipelineModelError,
    DanglingReferenceError,
    DuplicateArtifactError,
    RuleEvaluationError,
    CatalogError,
    InvalidSeverityWeightError,
)
from .pipeline_model import ArtifactRef, Operation, OperationKind, Pipeline, SourceLocation
from .lineage import Artifact, ArtifactRole, LineageGraph, LineageTracker, Provenance, ProvenanceKind
from .rule_base import AnalysisContext, Category, Finding, Match, Rule, RuleCatalog, Severity, rule
from .rule_catalog import build_catalog, get_default_catalog
from .rule_engine import EngineResult, RuleEngine
from .scoring import Band, ScoreResult, ScoringEngine, band_for
from .report import ComplianceReport
from .analyzer import ComplianceAnalyzer
from .report_store import ReportStore

__all__ = [
    # ── Errors ──
    "ComplianceError", "PipelineModelError", "DanglingReferenceError",
    "DuplicateArtifactError", "RuleEvaluationError", "CatalogError",
    "InvalidSeverityWeightError",
    # ── Pipeline model & lineage ──
    "ArtifactRef", "Operation", "OperationKind", "Pipeline", "SourceLocation",
    "Artifact", "ArtifactRole", "LineageGraph", "LineageTracker",
    "Provenance", "ProvenanceKind",
    # ── Rules ──
    "AnalysisContext", "Category", "Finding", "Match", "Rule", "RuleCatalog",
    "Severity", "rule", "build_catalog", "get_default_catalog",
    # ── Engine, scoring, report ──
    "EngineResult", "RuleEngine",
    "Band", "ScoreResult", "ScoringEngine", "band_for",
    "ComplianceReport", "ComplianceAnalyzer", "ReportStore",
]
