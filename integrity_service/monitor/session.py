"""
Session Controller - Drives a single monitored exam attempt
"""

import time
import uuid
import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Union

from .detectors import (
    ENVIRONMENT_REASONS,
    ActivityMonitor,
    DetectionResult,
    ViolationDetector,
    is_restricted_shortcut,
)
from .models import (
    EndReason,
    RotationLog,
    Sample,
    SessionPhase,
    SessionSummary,
    StudentInfo,
    Violation,
    ViolationReason,
    WarningNotice,
    to_iso,
)
from .policy import MonitorPolicy
from .transport import (
    DeliveryResult,
    InMemoryLogSink,
    LogSink,
    ProctorChannel,
    VIOLATION,
    HEAD_ROTATION,
    EXAM_RESULTS,
)
from .utils.logging import (
    log_session_start,
    log_session_end,
    log_violation_raised,
    log_rotation_logged,
    log_delivery_failure,
)

logger = logging.getLogger(__name__)


def wall_clock_ms() -> float:
    return time.time() * 1000


def format_remaining(remaining_ms: float) -> str:
    """Render remaining exam time as m:ss"""
    remaining_ms = max(0, remaining_ms)
    minutes = int(remaining_ms // 60000)
    seconds = int((remaining_ms % 60000) // 1000)
    return f"{minutes}:{seconds:02d}"


class SessionController:
    """
    Owns the state of one exam attempt.

    Consumes samples, environment events and timer ticks; keeps the
    warning count, violation log and rotation logs; decides when the
    session ends. The phase only moves forward:

        RUNNING -> ENDING -> ENDED

    All mutation happens under a re-entrant lock so environment callbacks
    and sampling ticks from different threads are serialized. Nothing is
    recorded or sent once the session has left RUNNING.
    """

    def __init__(
        self,
        exam_duration_ms: float,
        student: StudentInfo,
        proctor_channel: Optional[ProctorChannel] = None,
        *,
        policy: Optional[MonitorPolicy] = None,
        log_sink: Optional[LogSink] = None,
        clock: Callable[[], float] = wall_clock_ms,
        resources: Optional[Dict[str, Callable[[], Any]]] = None,
        session_id: Optional[str] = None,
        on_warning: Optional[Callable[[WarningNotice], None]] = None,
        on_complete: Optional[Callable[[SessionSummary], None]] = None,
        on_delivery: Optional[Callable[[DeliveryResult], None]] = None
    ):
        """
        Initialize a new monitored session.

        Args:
            exam_duration_ms: Allowed exam time in milliseconds
            student: Student being monitored
            proctor_channel: Optional channel for proctor alerts
            policy: Thresholds (defaults to MonitorPolicy())
            log_sink: Destination for violation/rotation/results records
            clock: Returns the current time in milliseconds
            resources: Named release callbacks (camera, fullscreen, ...)
            session_id: Optional custom session ID (auto-generated if not provided)
            on_warning: Called with each user-facing warning
            on_complete: Called once with the completion summary
            on_delivery: Called with every failed delivery
        """
        self.id = session_id or f"MON_{uuid.uuid4().hex[:6].upper()}"
        self.student = student
        self.exam_duration_ms = exam_duration_ms
        self.proctor_channel = proctor_channel
        self.policy = policy or MonitorPolicy()
        self.log_sink = log_sink or InMemoryLogSink()
        self.clock = clock
        self.resources: Dict[str, Callable[[], Any]] = dict(resources or {})

        self.on_warning = on_warning
        self.on_complete = on_complete
        self.on_delivery = on_delivery

        self.exam_start_ms = clock()
        self.max_warnings = self.policy.max_warnings
        self.warning_count = 0
        self.violations: List[Violation] = []
        self.rotation_logs: List[RotationLog] = []
        self.warnings: List[WarningNotice] = []
        self.delivery_failures: List[DeliveryResult] = []

        self.phase = SessionPhase.RUNNING
        self.end_reason: Optional[str] = None
        self.summary: Optional[SessionSummary] = None

        self.detector = ViolationDetector(self.exam_start_ms, self.policy)
        self.activity = ActivityMonitor(
            self.exam_start_ms,
            limit_ms=self.policy.inactivity_limit_ms,
            trigger=self.policy.inactivity_trigger
        )

        self._lock = threading.RLock()
        self._timers: List[Any] = []

        log_session_start(self.id, student.id, exam_duration_ms)

    @property
    def is_active(self) -> bool:
        return self.phase == SessionPhase.RUNNING

    def _now(self, now: Optional[float]) -> float:
        return self.clock() if now is None else now

    # ============== Timers ==============

    def attach_timer(self, handle: Any):
        """
        Register a cancellable timer (anything with cancel()).

        Attached timers are cancelled when the session starts ending. A
        timer attached after that point is cancelled immediately.
        """
        with self._lock:
            if self.phase != SessionPhase.RUNNING:
                handle.cancel()
                return
            self._timers.append(handle)

    def _cancel_timers(self):
        for handle in self._timers:
            try:
                handle.cancel()
            except Exception as e:
                logger.warning(f"Timer cancel failed for session {self.id}: {e}")
        self._timers = []

    # ============== Signals ==============

    def observe_sample(self, sample: Sample, now: Optional[float] = None) -> Optional[DetectionResult]:
        """
        Process one sampling tick.

        Args:
            sample: Face presence and keypoints
            now: Sample time in ms (defaults to sample.timestamp_ms, then the clock)

        Returns:
            DetectionResult, or None if the session is no longer running
        """
        with self._lock:
            if self.phase != SessionPhase.RUNNING:
                return None

            if now is None:
                now = sample.timestamp_ms
            now = self._now(now)

            result = self.detector.evaluate(sample, now)

            if result.rotation_log is not None:
                self._record_rotation(result.rotation_log)

            for reason in result.violations:
                if self.phase != SessionPhase.RUNNING:
                    break
                self._handle_violation(reason, now)

            return result

    def report_environment_violation(
        self,
        reason: Union[ViolationReason, str],
        now: Optional[float] = None
    ) -> bool:
        """
        Record a violation raised by the host environment.

        Args:
            reason: ViolationReason, its value ("Browser tab switched") or
                its name ("TAB_SWITCHED")

        Returns:
            True if the violation was recorded

        Raises:
            ValueError: unknown reason, or one only sampling may raise
        """
        reason = coerce_reason(reason)
        if reason not in ENVIRONMENT_REASONS:
            raise ValueError(f"Not an environment violation: {reason.name}")
        with self._lock:
            if self.phase != SessionPhase.RUNNING:
                return False
            self._handle_violation(reason, self._now(now))
            return True

    def report_keypress(
        self,
        key: str,
        ctrl: bool = False,
        alt: bool = False,
        shift: bool = False,
        meta: bool = False,
        now: Optional[float] = None
    ) -> bool:
        """Raise RESTRICTED_SHORTCUT when the key combination is not allowed"""
        if not is_restricted_shortcut(key, ctrl=ctrl, alt=alt, shift=shift, meta=meta):
            return False
        return self.report_environment_violation(ViolationReason.RESTRICTED_SHORTCUT, now)

    def record_activity(self, now: Optional[float] = None):
        """Record pointer movement"""
        with self._lock:
            if self.phase == SessionPhase.RUNNING:
                self.activity.record(self._now(now))

    def check_inactivity(self, now: Optional[float] = None) -> bool:
        """Raise INACTIVITY when the pointer has been idle past the limit"""
        with self._lock:
            if self.phase != SessionPhase.RUNNING:
                return False
            now = self._now(now)
            if not self.activity.check(now):
                return False
            self._handle_violation(ViolationReason.INACTIVITY, now)
            return True

    def tick(self, now: Optional[float] = None) -> float:
        """
        Advance the exam timer.

        Returns:
            Remaining exam time in ms (0 once time is up)
        """
        with self._lock:
            now = self._now(now)
            remaining = self.remaining_ms(now)
            if self.phase == SessionPhase.RUNNING and remaining <= 0:
                self.end_exam(EndReason.COMPLETED, now)
            return max(0.0, remaining)

    def remaining_ms(self, now: Optional[float] = None) -> float:
        return self.exam_duration_ms - (self._now(now) - self.exam_start_ms)

    # ============== Lifecycle ==============

    def end_exam(
        self,
        reason: Union[EndReason, str] = EndReason.COMPLETED,
        now: Optional[float] = None
    ) -> Optional[SessionSummary]:
        """
        End the session.

        Only the first call has any effect; later calls return the
        existing summary.

        Returns:
            The completion summary
        """
        with self._lock:
            if self.phase != SessionPhase.RUNNING:
                return self.summary

            reason_text = reason.value if isinstance(reason, EndReason) else str(reason)
            now = self._now(now)

            self.phase = SessionPhase.ENDING
            self.end_reason = reason_text
            logger.info(f"Session {self.id} ending: {reason_text}")

            self._cancel_timers()
            self._release_resources()

            self.summary = SessionSummary(
                student=self.student,
                head_rotation_logs=list(self.rotation_logs),
                exam_duration_ms=self.exam_duration_ms,
                actual_duration_ms=now - self.exam_start_ms,
                violations=list(self.violations),
                end_reason=reason_text,
                timestamp_ms=now
            )
            self.log_sink.send(EXAM_RESULTS, self.summary.to_payload(), self._on_delivery)

            self.phase = SessionPhase.ENDED
            log_session_end(self.id, reason_text, len(self.violations), len(self.rotation_logs))

            summary = self.summary

        self._notify(self.on_complete, summary)
        return summary

    def _release_resources(self):
        for name, release in self.resources.items():
            try:
                release()
                logger.debug(f"Released {name} for session {self.id}")
            except Exception as e:
                logger.warning(f"Failed to release {name} for session {self.id}: {e}")

    # ============== Internal ==============

    def _handle_violation(self, reason: ViolationReason, now: float):
        violation = Violation(timestamp_ms=now, reason=reason, student_id=self.student.id)
        self.violations.append(violation)
        self.warning_count += 1

        notice = WarningNotice(
            timestamp_ms=now,
            message=f"Security violation detected: {reason.value}",
            warning_count=self.warning_count
        )
        self.warnings.append(notice)
        log_violation_raised(self.id, reason.value, self.warning_count, self.max_warnings)

        self.log_sink.send(
            VIOLATION,
            {
                "timestamp": to_iso(now),
                "reason": reason.value,
                "studentInfo": self.student.to_payload(),
                "examId": self.student.exam_id
            },
            self._on_delivery
        )
        self._notify(self.on_warning, notice)

        if self.warning_count >= self.max_warnings:
            self.end_exam(EndReason.VIOLATIONS_EXCEEDED, now)

    def _record_rotation(self, rotation: RotationLog):
        self.rotation_logs.append(rotation)
        log_rotation_logged(
            self.id,
            rotation.duration,
            rotation.horizontal_angle,
            rotation.vertical_angle
        )

        payload = rotation.to_payload()
        payload["studentId"] = self.student.id
        payload["examId"] = self.student.exam_id
        self.log_sink.send(HEAD_ROTATION, payload, self._on_delivery)

        if self.proctor_channel is not None:
            result = self.proctor_channel.send_json({
                "type": "head_rotation",
                "studentId": self.student.id,
                "timestamp": to_iso(rotation.timestamp_ms),
                "duration": rotation.duration,
                "angles": {
                    "horizontal": rotation.horizontal_angle,
                    "vertical": rotation.vertical_angle
                }
            })
            self._on_delivery(result)

    def _on_delivery(self, result: DeliveryResult):
        if result.ok:
            return
        with self._lock:
            self.delivery_failures.append(result)
        log_delivery_failure(self.id, result.channel, result.kind, result.error)
        self._notify(self.on_delivery, result)

    def _notify(self, callback: Optional[Callable[[Any], None]], value: Any):
        if callback is None:
            return
        try:
            callback(value)
        except Exception as e:
            logger.error(f"Session {self.id} listener error: {e}")

    def status(self, now: Optional[float] = None) -> Dict[str, Any]:
        """Current session state"""
        with self._lock:
            now = self._now(now)
            remaining = max(0.0, self.remaining_ms(now))
            return {
                "session_id": self.id,
                "student_id": self.student.id,
                "phase": self.phase.value,
                "is_active": self.is_active,
                "warning_count": self.warning_count,
                "max_warnings": self.max_warnings,
                "violations": len(self.violations),
                "rotation_logs": len(self.rotation_logs),
                "remaining_ms": remaining,
                "remaining_display": format_remaining(remaining),
                "end_reason": self.end_reason,
                "delivery_failures": len(self.delivery_failures)
            }


def coerce_reason(reason: Union[ViolationReason, str]) -> ViolationReason:
    """Accept a ViolationReason, its value or its name"""
    if isinstance(reason, ViolationReason):
        return reason
    try:
        return ViolationReason(reason)
    except ValueError:
        pass
    try:
        return ViolationReason[str(reason).upper()]
    except KeyError:
        raise ValueError(f"Unknown violation reason: {reason}") from None
