"""
Application configuration.

All configuration is loaded from environment variables.
Award amounts and lock timeouts live here so they can be
tuned per deployment without touching the services.
"""

import os
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file into environment variables
load_dotenv()


def _parse_milestones(raw: str) -> dict[int, int]:
    """
    Parse "length:points" pairs, e.g. "5:5,10:15,30:50".

    Returns a mapping ordered by streak length.
    """
    milestones = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        length, points = pair.split(":")
        milestones[int(length)] = int(points)
    return dict(sorted(milestones.items()))


class Settings:
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Points Ledger Service"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Server
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    # Database
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql://localhost:5432/points_ledger"
    )

    # Environment
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    # Awards
    GRADE_AWARD_THRESHOLD: int = int(os.getenv("GRADE_AWARD_THRESHOLD", "4"))
    GRADE_AWARD_POINTS: int = int(os.getenv("GRADE_AWARD_POINTS", "10"))
    HOMEWORK_ON_TIME_POINTS: int = int(os.getenv("HOMEWORK_ON_TIME_POINTS", "5"))
    HOMEWORK_LATE_POINTS: int = int(os.getenv("HOMEWORK_LATE_POINTS", "0"))
    ATTENDANCE_MILESTONES: dict[int, int] = _parse_milestones(
        os.getenv("ATTENDANCE_MILESTONES", "5:5,10:15,30:50")
    )

    # Concurrency
    LOCK_TIMEOUT_SECONDS: float = float(os.getenv("LOCK_TIMEOUT_SECONDS", "2.0"))
    BUSY_RETRY_ATTEMPTS: int = int(os.getenv("BUSY_RETRY_ATTEMPTS", "3"))
    BUSY_RETRY_BASE_DELAY: float = float(os.getenv("BUSY_RETRY_BASE_DELAY", "0.05"))

    # Catalog
    SEED_DEMO_CATALOG: bool = os.getenv("SEED_DEMO_CATALOG", "false").lower() == "true"


@lru_cache()
def get_settings() -> Settings:
    """
    Return cached settings instance.

    The Settings object is created once and reused for all
    subsequent calls.
    """
    return Settings()
