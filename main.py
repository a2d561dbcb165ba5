"""
Workflow Compliance Engine — FastAPI Server (Port 8002)
=========================================================
Static analysis of modeling pipelines: 23 deterministic rules across data
leakage, resampling, workflow, evaluation and reproducibility, reduced to a
0-100 compliance score.

Run:
  uvicorn main:app --host 0.0.0.0 --port 8002 --reload
  # or
  python main.py
"""

import logging
import os
from contextlib import asynccontextmanager

# Load .env file BEFORE anything reads os.getenv()
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from wfcheck.config import settings  # noqa: E402

# ── Logging ──
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("wfcheck")


# ── Lifespan: create tables + build the analyzer ──
@asynccontextmanager
async def lifespan(app: FastAPI):
    from wfcheck.core.database import init_db

    init_db()

    # Catalog + scoring weights are validated here; a bad weight table
    # stops startup instead of failing the first request.
    from wfcheck.api.v1.compliance import get_analyzer
    analyzer = get_analyzer()
    logger.info(
        f"Analyzer ready: {len(analyzer.catalog)} rules, "
        f"weights={analyzer.scoring.to_dict()}, parallel={analyzer.engine.parallel}"
    )

    yield
    logger.info("Shutting down Workflow Compliance Engine")


# ── Create FastAPI app ──
app = FastAPI(
    title="Workflow Compliance Engine",
    description=(
        "Rule-based static analysis of statistical/ML modeling pipelines: "
        "data lineage tracking, 23 anti-pattern rules, weighted compliance scoring."
    ),
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.DEBUG,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ── Mount all API routes ──
from wfcheck.api.router import api_router  # noqa: E402
app.include_router(api_router, prefix="/api/v1")


# ── Root ──
@app.get("/", tags=["Root"])
async def root():
    return {
        "service": "Workflow Compliance Engine",
        "version": "1.0.0",
        "docs": "/docs",
        "endpoints": {
            "analyze": "/api/v1/compliance/analyze",
            "rules": "/api/v1/compliance/rules",
            "reports": "/api/v1/compliance/reports",
        },
        "health": "/api/v1/compliance/health",
    }


# ── Direct run ──
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=os.getenv("RELOAD", "true").lower() == "true",
        log_level="info",
    )
