"""
Application Settings — All via environment variables with sensible defaults.
"""
import os
from typing import List


def _csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings:
    # ── Server ──
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8002"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # ── Database ──
    # Default: SQLite (zero config). Production: set DATABASE_URL env var.
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./wfcheck.db")

    # ── CORS ──
    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "http://localhost:8000,http://localhost:3000,*")

    # ── Rule Engine ──
    PARALLEL_RULES: bool = os.getenv("PARALLEL_RULES", "false").lower() == "true"
    RULE_WORKERS: int = int(os.getenv("RULE_WORKERS", "4"))
    DISABLED_RULES: List[str] = _csv(os.getenv("DISABLED_RULES", ""))

    # ── Scoring (deduction per finding; validated by ScoringEngine) ──
    WEIGHT_CRITICAL: str = os.getenv("WEIGHT_CRITICAL", "25")
    WEIGHT_MAJOR: str = os.getenv("WEIGHT_MAJOR", "10")
    WEIGHT_MINOR: str = os.getenv("WEIGHT_MINOR", "5")


settings = Settings()
