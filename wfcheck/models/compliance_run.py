"""
Compliance Run — Database Model
=================================
One row per stored analysis. The full report is kept as JSON text; the
summary columns exist for listing and filtering without decoding it.

Table auto-created by Base.metadata.create_all(engine).
"""

from datetime import datetime
from uuid import uuid4
from sqlalchemy import Column, String, Text, Integer, DateTime, Index
from wfcheck.core.database import Base


class ComplianceRun(Base):
    __tablename__ = "compliance_runs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid4()))
    pipeline_name = Column(String(255), nullable=True, index=True)

    score = Column(Integer, nullable=False)
    band = Column(String(20), nullable=False)
    finding_count = Column(Integer, nullable=False, default=0)
    diagnostic_count = Column(Integer, nullable=False, default=0)

    report_json = Column(Text, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("ix_compliance_runs_name_created", "pipeline_name", "created_at"),
    )

    def __repr__(self):
        return f"<ComplianceRun(id={self.id}, pipeline={self.pipeline_name}, score={self.score})>"
