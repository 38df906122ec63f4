"""
Rotation Tracker - Debounces head turns into sustained rotation episodes
"""

import logging
from typing import Optional

from ..models import RotationEvent, RotationLog

logger = logging.getLogger(__name__)


class RotationTracker:
    """
    Turns a stream of per-sample head angles into discrete rotation logs.

    A turn starts when |horizontal| first exceeds the threshold; the
    angles at that onset sample are kept for the whole episode. The
    episode resolves lazily on the first sample back under threshold.
    Episodes not longer than the minimum duration are discarded so that
    brief glances are never logged.
    """

    TURN_THRESHOLD_DEGREES = 60.0
    MIN_DURATION_SECONDS = 2.1

    def __init__(
        self,
        turn_threshold: float = TURN_THRESHOLD_DEGREES,
        min_duration: float = MIN_DURATION_SECONDS
    ):
        self.turn_threshold = turn_threshold
        self.min_duration = min_duration
        self._event: Optional[RotationEvent] = None

    @property
    def in_flight(self) -> Optional[RotationEvent]:
        """The rotation currently being tracked, if any"""
        return self._event

    def observe(self, angle_h: float, angle_v: float, now: float) -> Optional[RotationLog]:
        """
        Feed one sample's angles.

        Args:
            angle_h: Horizontal angle in degrees
            angle_v: Vertical angle in degrees
            now: Sample time in milliseconds

        Returns:
            RotationLog when a sustained turn just ended, else None
        """
        turned = abs(angle_h) > self.turn_threshold

        if turned:
            if self._event is None:
                self._event = RotationEvent(
                    start_time_ms=now,
                    horizontal_angle=angle_h,
                    vertical_angle=angle_v
                )
                logger.debug(f"Head turn started at {now} (h={angle_h:.1f})")
            return None

        if self._event is None:
            return None

        event = self._event
        self._event = None
        duration = (now - event.start_time_ms) / 1000

        if duration <= self.min_duration:
            logger.debug(f"Head turn discarded: {duration:.2f}s")
            return None

        return RotationLog(
            timestamp_ms=event.start_time_ms,
            duration=duration,
            horizontal_angle=event.horizontal_angle,
            vertical_angle=event.vertical_angle
        )

    def reset(self):
        """Drop any in-flight rotation"""
        self._event = None
