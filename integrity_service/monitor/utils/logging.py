"""
Monitor Logger - Logs integrity monitor events
"""

import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


def log_monitor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a monitor event.

    Args:
        session_id: Monitored session ID
        event_type: Type of event (session_start, violation, rotation, etc.)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[MONITOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_start(session_id: str, student_id: str, exam_duration_ms: float):
    """Log session start event"""
    log_monitor_event(
        session_id=session_id,
        event_type="session_start",
        details={
            "student_id": student_id,
            "exam_duration_ms": int(exam_duration_ms)
        }
    )


def log_session_end(session_id: str, end_reason: str, violations: int, rotations: int):
    """Log session end event"""
    log_monitor_event(
        session_id=session_id,
        event_type="session_end",
        details={
            "reason": repr(end_reason),
            "violations": violations,
            "rotations": rotations
        }
    )


def log_violation_raised(session_id: str, reason: str, warning_count: int, max_warnings: int):
    """Log when a violation is recorded"""
    log_monitor_event(
        session_id=session_id,
        event_type="violation",
        details={
            "reason": repr(reason),
            "warnings": f"{warning_count}/{max_warnings}"
        },
        level="warning"
    )


def log_rotation_logged(session_id: str, duration: float, horizontal: float, vertical: float):
    """Log a sustained head rotation"""
    log_monitor_event(
        session_id=session_id,
        event_type="head_rotation",
        details={
            "duration": round(duration, 2),
            "horizontal": round(horizontal, 1),
            "vertical": round(vertical, 1)
        }
    )


def log_delivery_failure(session_id: str, channel: str, kind: str, error: Optional[str]):
    """Log a dropped best-effort delivery"""
    log_monitor_event(
        session_id=session_id,
        event_type="delivery_failed",
        details={
            "channel": channel,
            "kind": kind,
            "error": repr(error)
        },
        level="warning"
    )
