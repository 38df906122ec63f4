"""
Violation Detector - Evaluates samples and environment events against policy
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..models import RotationLog, Sample, TriggerMode, ViolationReason
from ..policy import MonitorPolicy
from .head_pose import HeadAngles, HeadPoseAnalyzer
from .rotation_tracker import RotationTracker

logger = logging.getLogger(__name__)


# Reasons raised by the host environment rather than by sampling
ENVIRONMENT_REASONS = frozenset({
    ViolationReason.FULLSCREEN_EXITED,
    ViolationReason.TAB_SWITCHED,
    ViolationReason.RESTRICTED_SHORTCUT,
    ViolationReason.INACTIVITY,
    ViolationReason.FULLSCREEN_FAILED,
})

COPY_PASTE_KEYS = ("c", "v", "x")


def is_restricted_shortcut(
    key: str,
    ctrl: bool = False,
    alt: bool = False,
    shift: bool = False,
    meta: bool = False
) -> bool:
    """
    Check whether a key press is a restricted shortcut.

    Restricted: alt+Tab, ctrl+shift+Escape, the Meta key itself,
    and ctrl+c / ctrl+v / ctrl+x (any case).
    """
    if alt and key == "Tab":
        return True
    if ctrl and shift and key == "Escape":
        return True
    if key == "Meta":
        return True
    if ctrl and key.lower() in COPY_PASTE_KEYS:
        return True
    return False


@dataclass
class DetectionResult:
    """Outcome of evaluating one sample"""
    angles: Optional[HeadAngles] = None
    rotation_log: Optional[RotationLog] = None
    violations: List[ViolationReason] = field(default_factory=list)
    face_present: bool = False


class ViolationDetector:
    """
    Evaluates each sample against the face-presence and head-rotation
    policies.

    Face absence:
        presence above the threshold refreshes last_face_present; once the
        face has been missing for longer than the grace window a
        FACE_NOT_DETECTED violation is raised. With EVERY_CHECK it is raised
        on every sample past the window; with PER_EPISODE only once until
        the face is seen again.

    Sustained rotation:
        head angles feed the RotationTracker; completed episodes come back
        as RotationLogs. These are reported but are not violations.
    """

    def __init__(self, session_start: float, policy: Optional[MonitorPolicy] = None):
        self.policy = policy or MonitorPolicy()
        self.analyzer = HeadPoseAnalyzer()
        self.tracker = RotationTracker(
            turn_threshold=self.policy.turn_threshold_degrees,
            min_duration=self.policy.min_rotation_seconds
        )
        self.last_face_present: float = session_start
        self._absence_reported = False

    def evaluate(self, sample: Sample, now: float) -> DetectionResult:
        """
        Evaluate a single sample.

        Args:
            sample: Face presence and keypoints for this tick
            now: Sample time in milliseconds

        Returns:
            DetectionResult with angles, any finished rotation, and violations
        """
        result = DetectionResult()

        angles = self.analyzer.analyze(sample.keypoints)
        if angles is not None:
            result.angles = angles
            result.rotation_log = self.tracker.observe(angles.horizontal, angles.vertical, now)

        result.face_present = self._check_face(sample.face_presence, now, result.violations)

        return result

    def _check_face(self, presence: float, now: float, violations: List[ViolationReason]) -> bool:
        if presence > self.policy.face_presence_threshold:
            self.last_face_present = now
            self._absence_reported = False
            return True

        if now - self.last_face_present <= self.policy.face_absence_grace_ms:
            return False

        if self.policy.face_absence_trigger == TriggerMode.PER_EPISODE:
            if self._absence_reported:
                return False
            self._absence_reported = True

        logger.debug(f"Face absent for {now - self.last_face_present:.0f}ms")
        violations.append(ViolationReason.FACE_NOT_DETECTED)
        return False
