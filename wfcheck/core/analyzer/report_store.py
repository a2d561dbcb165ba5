"""
Report Store — Optional Persistence of Compliance Reports
===========================================================
The analyzer itself is stateless; storing a report is the caller's choice.
This wraps the compliance_runs table behind save / get / list_recent.

Usage:
  store = ReportStore(db_session)
  run_id = store.save(report)
  stored = store.get(run_id)
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .report import ComplianceReport

logger = logging.getLogger(__name__)


class ReportStore:

    def __init__(self, db_session, run_model=None):
        if run_model is None:
            from wfcheck.models.compliance_run import ComplianceRun
            run_model = ComplianceRun
        self.db = db_session
        self.model = run_model

    def save(self, report: ComplianceReport) -> str:
        row = self.model(
            pipeline_name=report.pipeline_name,
            score=report.score,
            band=report.band.value,
            finding_count=len(report.findings),
            diagnostic_count=len(report.diagnostics),
            report_json=report.to_json(indent=None),
        )
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Stored compliance run {row.id} (score={row.score})")
        return row.id

    def get(self, run_id: str) -> Optional[Dict[str, Any]]:
        row = self.db.query(self.model).filter(self.model.id == run_id).first()
        if row is None:
            return None
        return self._row_to_dict(row, include_report=True)

    def list_recent(self, pipeline_name: Optional[str] = None, limit: int = 20) -> List[Dict[str, Any]]:
        query = self.db.query(self.model)
        if pipeline_name:
            query = query.filter(self.model.pipeline_name == pipeline_name)
        rows = query.order_by(self.model.created_at.desc()).limit(max(1, limit)).all()
        return [self._row_to_dict(r) for r in rows]

    @staticmethod
    def _row_to_dict(row, include_report: bool = False) -> Dict[str, Any]:
        out = {
            "runId": row.id,
            "pipeline": row.pipeline_name,
            "score": row.score,
            "band": row.band,
            "findingCount": row.finding_count,
            "diagnosticCount": row.diagnostic_count,
            "createdAt": row.created_at.isoformat() if row.created_at else None,
        }
        if include_report:
            out["report"] = json.loads(row.report_json)
        return out
