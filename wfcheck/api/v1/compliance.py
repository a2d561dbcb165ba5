"""
Workflow Compliance — API Endpoints
=====================================
FastAPI router exposing the compliance analyzer.

Endpoints:
  POST /analyze            — Analyze a parsed pipeline, optionally store the report
  GET  /rules              — List the active rule catalog
  GET  /reports            — Recent stored runs (filter by pipeline name)
  GET  /reports/{run_id}   — One stored report
  GET  /health             — Component health check

Integration (in main.py):
  from wfcheck.api.router import api_router
  app.include_router(api_router, prefix="/api/v1")
"""

import logging
import time
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field
from fastapi import APIRouter, Depends, Query, HTTPException

from wfcheck.core.database import get_db
from wfcheck.core.analyzer import ComplianceAnalyzer, PipelineModelError, ReportStore

logger = logging.getLogger(__name__)
router = APIRouter()

VERSION = "1.0.0"


# ═══════════════════════════════════════════════════════════════
# ANALYZER FACTORY (lazy singleton)
# ═══════════════════════════════════════════════════════════════

_analyzer_cache: Dict[str, ComplianceAnalyzer] = {}


def get_analyzer() -> ComplianceAnalyzer:
    """
    Build the analyzer once per process from Settings.
    Invalid scoring weights raise here, at construction, never mid-request.
    """
    analyzer = _analyzer_cache.get("default")
    if analyzer is None:
        from wfcheck.config import settings
        analyzer = ComplianceAnalyzer.from_settings(settings)
        _analyzer_cache["default"] = analyzer
    return analyzer


# ═══════════════════════════════════════════════════════════════
# REQUEST / RESPONSE SCHEMAS
# ═══════════════════════════════════════════════════════════════

class OperationIn(BaseModel):
    id: Optional[int] = Field(default=None, description="Sequence index; defaults to list position")
    kind: str = Field(..., description="Split|DefinePreprocessor|PrepPreprocessor|ApplyPreprocessor|DefineResample|Tune|SelectBest|FinalizeWorkflow|Fit|Predict|Evaluate|SetSeed|Other")
    inputs: List[Union[str, Dict[str, Any]]] = []
    outputs: List[Union[str, Dict[str, Any]]] = Field(default=[], description="Artifact ids, or {id, slot} for Split outputs")
    location: Optional[Dict[str, Any]] = None
    attributes: Dict[str, Any] = {}


class AnalyzeRequest(BaseModel):
    name: Optional[str] = None
    sources: List[str] = Field(default=[], description="Artifacts that exist before the first operation")
    metadata: Dict[str, Any] = {}
    operations: List[OperationIn] = []
    persist: bool = Field(default=False, description="Store the report in compliance_runs")


class ReportResponse(BaseModel):
    findings: List[Dict[str, Any]]
    score: int
    band: str
    diagnostics: List[Dict[str, Any]] = []
    counts: Dict[str, Any] = {}
    deductions: Dict[str, Any] = {}
    catalogVersion: int = 0
    pipeline: Optional[str] = None
    runId: Optional[str] = None
    timing: Dict[str, float] = {}


class RuleItem(BaseModel):
    ruleId: str
    category: str
    severity: str
    title: str
    version: int


class HealthResponse(BaseModel):
    status: str
    components: Dict[str, str]
    rules: int
    version: str
    uptime_seconds: Optional[float] = None


# ═══════════════════════════════════════════════════════════════
# ENDPOINTS
# ═══════════════════════════════════════════════════════════════

_start_time = time.time()


@router.post("/analyze", response_model=ReportResponse)
async def analyze_pipeline(
    request: AnalyzeRequest,
    db=Depends(get_db),
    analyzer: ComplianceAnalyzer = Depends(get_analyzer),
):
    """
    Analyze one pipeline.

    Pipeline: Lineage → Rule Catalog → Scoring → Report (→ Store, if persist=true)
    Malformed pipelines (dangling references, bad ids) return 422.
    """
    payload = request.model_dump(exclude={"persist"})
    try:
        report = analyzer.analyze(payload)
    except PipelineModelError as e:
        logger.info(f"Rejected pipeline '{request.name or 'unnamed'}': {e}")
        raise HTTPException(
            status_code=422,
            detail={"error": type(e).__name__, "message": str(e)},
        )
    except Exception as e:
        logger.error(f"Analysis of '{request.name or 'unnamed'}' failed: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Analysis failed")

    run_id = None
    if request.persist:
        try:
            run_id = ReportStore(db).save(report)
        except Exception as e:
            logger.error(f"Report persistence failed: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail="Report could not be stored")

    return ReportResponse(
        **report.to_dict(),
        runId=run_id,
        timing=report.timing,
    )


@router.get("/rules", response_model=List[RuleItem])
async def list_rules(
    category: Optional[str] = Query(default=None, description="Filter by category"),
    analyzer: ComplianceAnalyzer = Depends(get_analyzer),
):
    rules = analyzer.catalog.to_list()
    if category:
        rules = [r for r in rules if r["category"].lower() == category.lower()]
    return rules


@router.get("/reports")
async def list_reports(
    pipeline_name: Optional[str] = Query(default=None),
    limit: int = Query(default=20, ge=1, le=200),
    db=Depends(get_db),
):
    return {"runs": ReportStore(db).list_recent(pipeline_name=pipeline_name, limit=limit)}


@router.get("/reports/{run_id}")
async def get_report(run_id: str, db=Depends(get_db)):
    stored = ReportStore(db).get(run_id)
    if stored is None:
        raise HTTPException(status_code=404, detail=f"No compliance run '{run_id}'")
    return stored


@router.get("/health", response_model=HealthResponse)
async def health(analyzer: ComplianceAnalyzer = Depends(get_analyzer)):
    components = {
        "rule_engine": "ok",
        "scoring": "ok",
        "catalog": "ok" if len(analyzer.catalog) else "empty",
    }
    return HealthResponse(
        status="healthy" if all(v == "ok" for v in components.values()) else "degraded",
        components=components,
        rules=len(analyzer.catalog),
        version=VERSION,
        uptime_seconds=round(time.time() - _start_time, 1),
    )
