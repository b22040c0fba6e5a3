"""
FORMCOACH Configuration

Environment variables and application settings.
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "FORMCOACH"
    DEBUG: bool = True

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8080"]

    # Session defaults
    DEFAULT_REPS_PER_SET: int = 10
    DEFAULT_TOTAL_SETS: int = 3
    REST_DURATION_SECONDS: int = 90

    # Pose confidence thresholds
    MIN_POSE_CONFIDENCE: float = 0.2
    MIN_PART_CONFIDENCE: float = 0.6

    # 0 re-selects the tracked side from scratch every frame
    SIDE_SWITCH_MARGIN: float = 0.0

    # Rest timer
    REST_TICK_SECONDS: float = 1.0

    # Result submission (empty URL = log only)
    RESULT_SUBMIT_URL: str = ""
    RESULT_SUBMIT_TIMEOUT: float = 5.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
