"""Integrity detectors"""

from .head_pose import HeadAngles, HeadPoseAnalyzer
from .rotation_tracker import RotationTracker
from .activity_monitor import ActivityMonitor
from .violation_detector import (
    DetectionResult,
    ViolationDetector,
    ENVIRONMENT_REASONS,
    is_restricted_shortcut,
)

__all__ = [
    "HeadAngles",
    "HeadPoseAnalyzer",
    "RotationTracker",
    "ActivityMonitor",
    "DetectionResult",
    "ViolationDetector",
    "ENVIRONMENT_REASONS",
    "is_restricted_shortcut",
]
