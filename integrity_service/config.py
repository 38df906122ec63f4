"""
Exam Integrity Service Configuration Settings

Policy constants for the integrity monitor:
- Warnings: 3 violations terminate the session
- Head turn: |yaw| > 60 degrees, sustained > 2.1 s
- Face absence: presence <= 0.9 for more than 3000 ms
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Configuration for the Exam Integrity service."""

    # API Settings
    APP_NAME: str = "Exam Integrity Service"
    DEBUG: bool = True
    PORT: int = 8002

    # Warning policy
    MAX_WARNINGS: int = 3

    # Head rotation policy
    TURN_THRESHOLD_DEGREES: float = 60.0
    MIN_ROTATION_SECONDS: float = 2.1

    # Face presence policy
    FACE_PRESENCE_THRESHOLD: float = 0.9
    FACE_ABSENCE_GRACE_MS: int = 3000
    FACE_ABSENCE_TRIGGER: str = "per_episode"  # or "every_check"

    # Pointer inactivity policy
    INACTIVITY_LIMIT_MS: int = 30000
    INACTIVITY_TRIGGER: str = "per_episode"

    # Tick intervals
    SAMPLE_INTERVAL_MS: int = 2000
    TIMER_INTERVAL_MS: int = 1000
    INACTIVITY_CHECK_MS: int = 5000

    DEFAULT_EXAM_DURATION_MS: int = 3600000  # 1 hour exam
    SESSION_RETENTION_SECONDS: float = 60.0  # keep ended sessions for results lookup

    # Log sink (unset = in-process log store)
    LOG_SINK_URL: Optional[str] = None
    SINK_TIMEOUT_SECONDS: float = 5.0
    SINK_MAX_WORKERS: int = 4

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
