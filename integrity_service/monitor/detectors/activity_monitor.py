"""
Activity Monitor - Tracks pointer activity and reports prolonged inactivity
"""

import logging

from ..models import TriggerMode

logger = logging.getLogger(__name__)


class ActivityMonitor:
    """
    Tracks the last pointer movement and flags inactivity longer than
    the limit when checked.

    The host calls record() on every pointer move and check() on its
    own schedule (every 5 s by default).
    """

    INACTIVITY_LIMIT_MS = 30000

    def __init__(
        self,
        start_time: float,
        limit_ms: float = INACTIVITY_LIMIT_MS,
        trigger: TriggerMode = TriggerMode.PER_EPISODE
    ):
        self.limit_ms = limit_ms
        self.trigger = trigger
        self.last_activity: float = start_time
        self._episode_reported = False

    def record(self, now: float):
        """Record pointer activity"""
        self.last_activity = now
        self._episode_reported = False

    def check(self, now: float) -> bool:
        """
        Returns True when an inactivity violation should be raised.
        """
        if now - self.last_activity <= self.limit_ms:
            return False

        if self.trigger == TriggerMode.PER_EPISODE:
            if self._episode_reported:
                return False
            self._episode_reported = True

        logger.debug(f"Pointer inactive for {now - self.last_activity:.0f}ms")
        return True

    def inactive_for(self, now: float) -> float:
        return max(0.0, now - self.last_activity)
