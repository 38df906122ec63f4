"""
Monitor Models - Samples, violations and session records
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


def to_iso(timestamp_ms: float) -> str:
    """Render epoch milliseconds as an ISO-8601 UTC string"""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()


class ViolationReason(str, Enum):
    """Policy breaches that count toward the warning limit"""
    FACE_NOT_DETECTED = "Face not detected"
    FULLSCREEN_EXITED = "Fullscreen mode exited"
    TAB_SWITCHED = "Browser tab switched"
    RESTRICTED_SHORTCUT = "Restricted keyboard shortcut used"
    INACTIVITY = "Prolonged inactivity detected"
    FULLSCREEN_FAILED = "Failed to enter fullscreen mode"


class SessionPhase(str, Enum):
    RUNNING = "running"
    ENDING = "ending"
    ENDED = "ended"


class EndReason(str, Enum):
    COMPLETED = "Exam completed"
    VIOLATIONS_EXCEEDED = "Security violations exceeded maximum limit"


class TriggerMode(str, Enum):
    """
    How an absence-style condition re-raises while it persists.

    EVERY_CHECK raises on every check past the grace window (level-triggered).
    PER_EPISODE raises once and re-arms only after the condition clears
    (edge-triggered).
    """
    EVERY_CHECK = "every_check"
    PER_EPISODE = "per_episode"


@dataclass(frozen=True)
class Keypoint:
    x: float
    y: float


@dataclass(frozen=True)
class Sample:
    """One sampling tick: face-presence probability plus named keypoints"""
    face_presence: float
    keypoints: Mapping[str, Keypoint] = field(default_factory=dict)
    timestamp_ms: Optional[float] = None


@dataclass(frozen=True)
class StudentInfo:
    id: str
    name: str = ""
    exam_id: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = {"id": self.id, "name": self.name}
        if self.exam_id is not None:
            payload["examId"] = self.exam_id
        return payload


@dataclass(frozen=True)
class RotationEvent:
    """In-flight head turn; angles are captured at onset"""
    start_time_ms: float
    horizontal_angle: float
    vertical_angle: float


@dataclass(frozen=True)
class RotationLog:
    """One sustained head-turn episode"""
    timestamp_ms: float
    duration: float
    horizontal_angle: float
    vertical_angle: float

    def to_payload(self) -> Dict[str, Any]:
        return {
            "timestamp": to_iso(self.timestamp_ms),
            "duration": self.duration,
            "horizontalAngle": self.horizontal_angle,
            "verticalAngle": self.vertical_angle,
        }


@dataclass(frozen=True)
class Violation:
    timestamp_ms: float
    reason: ViolationReason
    student_id: Optional[str]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "timestamp": to_iso(self.timestamp_ms),
            "reason": self.reason.value,
            "studentId": self.student_id,
        }


@dataclass(frozen=True)
class WarningNotice:
    """Transient user-facing warning shown after a violation"""
    timestamp_ms: float
    message: str
    warning_count: int


@dataclass(frozen=True)
class SessionSummary:
    """Completion summary, also the session-results sink body"""
    student: StudentInfo
    head_rotation_logs: List[RotationLog]
    exam_duration_ms: float
    actual_duration_ms: float
    violations: List[Violation]
    end_reason: str
    timestamp_ms: float

    def to_payload(self) -> Dict[str, Any]:
        return {
            "studentInfo": self.student.to_payload(),
            "headRotationLogs": [log.to_payload() for log in self.head_rotation_logs],
            "examDuration": self.exam_duration_ms,
            "actualDuration": self.actual_duration_ms,
            "violations": [v.to_payload() for v in self.violations],
            "endReason": self.end_reason,
            "timestamp": to_iso(self.timestamp_ms),
        }
