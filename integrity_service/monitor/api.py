"""
Monitor API - FastAPI endpoints for exam integrity monitoring

Endpoints:
- POST /api/monitor/start - Start a monitored exam session
- POST /api/monitor/sample - Submit one face/pose sample
- POST /api/monitor/environment - Report an environment violation
- POST /api/monitor/keyboard - Report a key press (restricted combos raise a violation)
- POST /api/monitor/activity - Report pointer activity
- POST /api/monitor/inactivity - Run the pointer inactivity check
- POST /api/monitor/tick - Advance the exam timer
- POST /api/monitor/end - End the exam and get the summary
- GET /api/monitor/status/{session_id} - Get session status
- GET /api/monitor/results/{session_id} - Get the completion summary

Log sinks:
- POST /api/log-violation, /api/log-head-rotation, /api/save-exam-results
- GET /api/logs

Proctor relay:
- WS /ws/proctor
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from ..config import settings
from .models import Keypoint, Sample, SessionPhase, StudentInfo
from .policy import MonitorPolicy
from .session import SessionController, format_remaining
from .transport import (
    HttpLogSink,
    InMemoryLogSink,
    LogSink,
    LogStore,
    ProctorRelay,
    RelayChannel,
    VIOLATION,
    HEAD_ROTATION,
    EXAM_RESULTS,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/monitor", tags=["Integrity Monitor"])
sink_router = APIRouter(prefix="/api", tags=["Log Sinks"])
relay_router = APIRouter(tags=["Proctor Relay"])

# In-memory session storage (replace with Redis for production)
_sessions: Dict[str, SessionController] = {}

log_store = LogStore()
relay = ProctorRelay()
_http_sink: Optional[HttpLogSink] = None


def get_log_sink() -> LogSink:
    """Remote sink when LOG_SINK_URL is set, otherwise the in-process store"""
    global _http_sink
    if settings.LOG_SINK_URL:
        if _http_sink is None:
            _http_sink = HttpLogSink(
                settings.LOG_SINK_URL,
                timeout=settings.SINK_TIMEOUT_SECONDS,
                max_workers=settings.SINK_MAX_WORKERS
            )
        return _http_sink
    return InMemoryLogSink(log_store)


# ============== Request/Response Models ==============

class StartSessionRequest(BaseModel):
    """Request to start a monitored exam"""
    student_id: str = Field(..., description="ID of the student")
    student_name: str = Field("", description="Display name of the student")
    exam_id: Optional[str] = Field(None, description="ID of the exam")
    exam_duration_ms: Optional[int] = Field(None, gt=0, description="Exam length in ms")
    alert_proctor: bool = Field(True, description="Relay head rotations to connected proctors")


class StartSessionResponse(BaseModel):
    """Response after starting a session"""
    session_id: str
    status: str
    message: str
    exam_duration_ms: int


class KeypointModel(BaseModel):
    x: float
    y: float


class SampleRequest(BaseModel):
    """One sampling tick from the pose model"""
    session_id: str = Field(..., description="Session ID from /start")
    face_presence: float = Field(..., ge=0.0, le=1.0, description="Face presence probability")
    keypoints: Dict[str, KeypointModel] = Field(default_factory=dict)
    timestamp_ms: Optional[float] = Field(None, description="Sample time in epoch ms")


class SampleResponse(BaseModel):
    """Response after processing a sample"""
    processed: bool
    phase: str
    warning_count: int
    face_present: bool = False
    horizontal_angle: Optional[float] = None
    vertical_angle: Optional[float] = None
    rotation_logged: bool = False
    violations: List[str] = []


class EnvironmentEventRequest(BaseModel):
    """Request to record an environment violation"""
    session_id: str
    reason: str = Field(..., description="Reason value or name, e.g. TAB_SWITCHED")


class KeyboardEventRequest(BaseModel):
    """Key press observed by the client"""
    session_id: str
    key: str
    ctrl: bool = False
    alt: bool = False
    shift: bool = False
    meta: bool = False


class ViolationResponse(BaseModel):
    """Response after an environment event"""
    recorded: bool
    phase: str
    warning_count: int
    message: Optional[str] = None


class SessionRequest(BaseModel):
    session_id: str


class ActivityResponse(BaseModel):
    recorded: bool


class TickResponse(BaseModel):
    """Exam timer state"""
    remaining_ms: float
    remaining_display: str
    phase: str


class EndSessionRequest(BaseModel):
    """Request to end an exam"""
    session_id: str
    reason: Optional[str] = None


class EndSessionResponse(BaseModel):
    """Final session results"""
    session_id: str
    end_reason: str
    warning_count: int
    violations: int
    rotation_logs: int
    actual_duration_ms: float


class SessionStatusResponse(BaseModel):
    """Current session status"""
    session_id: str
    student_id: str
    phase: str
    is_active: bool
    warning_count: int
    max_warnings: int
    violations: int
    rotation_logs: int
    remaining_ms: float
    remaining_display: str
    end_reason: Optional[str] = None
    delivery_failures: int


# ============== Helpers ==============

def _get_session(session_id: str) -> SessionController:
    session = _sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def _get_active_session(session_id: str) -> SessionController:
    session = _get_session(session_id)
    if not session.is_active:
        raise HTTPException(status_code=400, detail="Session is not active")
    return session


def _schedule_cleanup(session_id: str):
    """Drop an ended session after the retention window"""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return
    loop.call_later(settings.SESSION_RETENTION_SECONDS, _cleanup_session, session_id)


def _cleanup_session(session_id: str):
    if _sessions.pop(session_id, None) is not None:
        logger.info(f"Cleaned up session: {session_id}")


def _violation_response(session: SessionController, recorded: bool) -> ViolationResponse:
    message = session.warnings[-1].message if recorded and session.warnings else None
    return ViolationResponse(
        recorded=recorded,
        phase=session.phase.value,
        warning_count=session.warning_count,
        message=message
    )


# ============== API Endpoints ==============

@router.post("/start", response_model=StartSessionResponse)
async def start_session(request: StartSessionRequest):
    """
    Start a new monitored exam session.

    The session begins in the running phase; the exam clock starts now.
    """
    duration = request.exam_duration_ms or settings.DEFAULT_EXAM_DURATION_MS
    student = StudentInfo(
        id=request.student_id,
        name=request.student_name,
        exam_id=request.exam_id
    )

    try:
        session = SessionController(
            exam_duration_ms=duration,
            student=student,
            proctor_channel=RelayChannel(relay) if request.alert_proctor else None,
            policy=MonitorPolicy.from_settings(settings),
            log_sink=get_log_sink(),
            on_complete=lambda summary: _schedule_cleanup(session.id)
        )
    except Exception as e:
        logger.error(f"Failed to start monitored session: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    _sessions[session.id] = session
    logger.info(f"Started monitored session: {session.id}")

    return StartSessionResponse(
        session_id=session.id,
        status=session.phase.value,
        message="Monitoring session started successfully",
        exam_duration_ms=duration
    )


@router.post("/sample", response_model=SampleResponse)
async def submit_sample(request: SampleRequest):
    """
    Process a single face/pose sample.

    Missing keypoints are treated as no head-pose signal for this tick.
    """
    session = _get_active_session(request.session_id)

    sample = Sample(
        face_presence=request.face_presence,
        keypoints={name: Keypoint(x=kp.x, y=kp.y) for name, kp in request.keypoints.items()},
        timestamp_ms=request.timestamp_ms
    )
    result = session.observe_sample(sample)

    if result is None:
        return SampleResponse(
            processed=False,
            phase=session.phase.value,
            warning_count=session.warning_count
        )

    return SampleResponse(
        processed=True,
        phase=session.phase.value,
        warning_count=session.warning_count,
        face_present=result.face_present,
        horizontal_angle=result.angles.horizontal if result.angles else None,
        vertical_angle=result.angles.vertical if result.angles else None,
        rotation_logged=result.rotation_log is not None,
        violations=[reason.value for reason in result.violations]
    )


@router.post("/environment", response_model=ViolationResponse)
async def report_environment(request: EnvironmentEventRequest):
    """
    Record an environment violation (fullscreen exit, tab switch, ...).
    """
    session = _get_active_session(request.session_id)

    try:
        recorded = session.report_environment_violation(request.reason)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return _violation_response(session, recorded)


@router.post("/keyboard", response_model=ViolationResponse)
async def report_keyboard(request: KeyboardEventRequest):
    """
    Report a key press; restricted combinations count as a violation.
    """
    session = _get_active_session(request.session_id)

    recorded = session.report_keypress(
        request.key,
        ctrl=request.ctrl,
        alt=request.alt,
        shift=request.shift,
        meta=request.meta
    )
    return _violation_response(session, recorded)


@router.post("/activity", response_model=ActivityResponse)
async def report_activity(request: SessionRequest):
    """Record pointer activity for the inactivity check"""
    session = _get_active_session(request.session_id)
    session.record_activity()
    return ActivityResponse(recorded=True)


@router.post("/inactivity", response_model=ViolationResponse)
async def check_inactivity(request: SessionRequest):
    """Run the pointer inactivity check (called every 5 seconds)"""
    session = _get_active_session(request.session_id)
    recorded = session.check_inactivity()
    return _violation_response(session, recorded)


@router.post("/tick", response_model=TickResponse)
async def advance_timer(request: SessionRequest):
    """
    Advance the exam timer (called every second).

    Ends the exam once the allotted time is used up.
    """
    session = _get_session(request.session_id)
    remaining = session.tick()

    return TickResponse(
        remaining_ms=remaining,
        remaining_display=format_remaining(remaining),
        phase=session.phase.value
    )


@router.post("/end", response_model=EndSessionResponse)
async def end_session(request: EndSessionRequest):
    """
    End the exam and return the session summary.

    Ending an already ended session returns the existing summary.
    """
    session = _get_session(request.session_id)

    if request.reason:
        summary = session.end_exam(request.reason)
    else:
        summary = session.end_exam()

    return EndSessionResponse(
        session_id=session.id,
        end_reason=summary.end_reason,
        warning_count=session.warning_count,
        violations=len(summary.violations),
        rotation_logs=len(summary.head_rotation_logs),
        actual_duration_ms=summary.actual_duration_ms
    )


@router.get("/status/{session_id}", response_model=SessionStatusResponse)
async def get_session_status(session_id: str):
    """
    Get current status of a monitored session.
    """
    session = _get_session(session_id)
    return SessionStatusResponse(**session.status())


@router.get("/results/{session_id}")
async def get_session_results(session_id: str):
    """
    Get the completion summary of an ended session.
    """
    session = _get_session(session_id)

    if session.phase != SessionPhase.ENDED:
        raise HTTPException(status_code=400, detail="Session has not ended")

    return session.summary.to_payload()


@router.get("/health")
async def health_check():
    """Health check for the monitor module"""
    return {
        "status": "healthy",
        "active_sessions": sum(1 for s in _sessions.values() if s.is_active),
        "proctors_connected": relay.client_count,
        "module": "integrity_monitor"
    }


# ============== Log Sink Endpoints ==============

@sink_router.post("/log-violation")
async def log_violation(payload: Dict[str, Any]):
    log_store.record(VIOLATION, payload)
    return {"success": True}


@sink_router.post("/log-head-rotation")
async def log_head_rotation(payload: Dict[str, Any]):
    log_store.record(HEAD_ROTATION, payload)
    return {"success": True}


@sink_router.post("/save-exam-results")
async def save_exam_results(payload: Dict[str, Any]):
    log_store.record(EXAM_RESULTS, payload)
    return {"success": True}


@sink_router.get("/logs")
async def list_logs(kind: Optional[str] = None):
    """List stored records, optionally filtered by kind"""
    entries = log_store.entries(kind)
    return {"count": len(entries), "entries": entries}


# ============== Proctor Relay ==============

@relay_router.websocket("/ws/proctor")
async def proctor_relay(websocket: WebSocket):
    """
    Broadcast every message from one client to all other open clients.
    """
    await relay.connect(websocket)
    try:
        while True:
            message = await websocket.receive_text()
            await relay.broadcast(message, sender=websocket)
    except WebSocketDisconnect:
        pass
    finally:
        relay.disconnect(websocket)
