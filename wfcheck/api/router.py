"""
API Router — Mounts the compliance endpoints under /compliance.

  /api/v1/compliance/{analyze,rules,reports,reports/{run_id},health}
"""

from fastapi import APIRouter

from wfcheck.api.v1.compliance import router as compliance_router

api_router = APIRouter()

api_router.include_router(
    compliance_router,
    prefix="/compliance",
    tags=["Workflow Compliance"],
)
