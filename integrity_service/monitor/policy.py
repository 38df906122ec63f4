"""
Monitor Policy - Thresholds and intervals consumed by the integrity monitor
"""

from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from .models import TriggerMode

if TYPE_CHECKING:
    from ..config import Settings


@dataclass(frozen=True)
class MonitorPolicy:
    """
    Immutable policy thresholds.

    Defaults match the service settings so the core can be used
    without loading configuration.
    """

    max_warnings: int = 3

    turn_threshold_degrees: float = 60.0
    min_rotation_seconds: float = 2.1

    face_presence_threshold: float = 0.9
    face_absence_grace_ms: float = 3000
    face_absence_trigger: TriggerMode = TriggerMode.PER_EPISODE

    inactivity_limit_ms: float = 30000
    inactivity_trigger: TriggerMode = TriggerMode.PER_EPISODE

    sample_interval_ms: int = 2000
    timer_interval_ms: int = 1000
    inactivity_check_ms: int = 5000

    @classmethod
    def from_settings(cls, settings: Optional["Settings"] = None) -> "MonitorPolicy":
        """Build a policy from service settings (defaults to the global settings)"""
        if settings is None:
            from ..config import settings as default_settings
            settings = default_settings

        return cls(
            max_warnings=settings.MAX_WARNINGS,
            turn_threshold_degrees=settings.TURN_THRESHOLD_DEGREES,
            min_rotation_seconds=settings.MIN_ROTATION_SECONDS,
            face_presence_threshold=settings.FACE_PRESENCE_THRESHOLD,
            face_absence_grace_ms=settings.FACE_ABSENCE_GRACE_MS,
            face_absence_trigger=TriggerMode(settings.FACE_ABSENCE_TRIGGER),
            inactivity_limit_ms=settings.INACTIVITY_LIMIT_MS,
            inactivity_trigger=TriggerMode(settings.INACTIVITY_TRIGGER),
            sample_interval_ms=settings.SAMPLE_INTERVAL_MS,
            timer_interval_ms=settings.TIMER_INTERVAL_MS,
            inactivity_check_ms=settings.INACTIVITY_CHECK_MS,
        )
