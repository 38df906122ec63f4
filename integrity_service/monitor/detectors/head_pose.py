"""
Head Pose Analyzer - Estimates head rotation from nose and ear keypoints
"""

import math
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from ..models import Keypoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HeadAngles:
    """Head rotation in degrees"""
    horizontal: float
    vertical: float


class HeadPoseAnalyzer:
    """
    Converts pose keypoints into horizontal (yaw-like) and vertical
    (pitch-like) rotation angles.

    The nose offset from the midpoint between the ears is measured
    against the ear span:
    - horizontal = atan2(nose.x - mid.x, ear_span)
    - vertical   = atan2(nose.y - mid.y, ear_span)

    A zero ear span (ears aligned, head in full profile) yields +/-90
    degrees rather than an error.
    """

    NOSE = "nose"
    LEFT_EAR = "leftEar"
    RIGHT_EAR = "rightEar"

    REQUIRED_KEYPOINTS = (NOSE, LEFT_EAR, RIGHT_EAR)

    def analyze(self, keypoints: Optional[Mapping[str, Keypoint]]) -> Optional[HeadAngles]:
        """
        Compute head angles for one sample.

        Args:
            keypoints: Mapping of keypoint name to position

        Returns:
            HeadAngles, or None when any required keypoint is missing
        """
        if not keypoints:
            return None

        if any(keypoints.get(name) is None for name in self.REQUIRED_KEYPOINTS):
            logger.debug("Head pose skipped: missing keypoints")
            return None

        nose = keypoints[self.NOSE]
        left_ear = keypoints[self.LEFT_EAR]
        right_ear = keypoints[self.RIGHT_EAR]

        ear_span = right_ear.x - left_ear.x
        mid_x = (left_ear.x + right_ear.x) / 2
        mid_y = (left_ear.y + right_ear.y) / 2

        horizontal = math.degrees(math.atan2(nose.x - mid_x, ear_span))
        vertical = math.degrees(math.atan2(nose.y - mid_y, ear_span))

        return HeadAngles(horizontal=horizontal, vertical=vertical)
