"""
Pytest Configuration for Integrity Service Tests
"""
import pytest
from fastapi.testclient import TestClient


class FakeClock:
    """Manually advanced millisecond clock"""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


class RecordingSink:
    """Log sink double that keeps every record it is sent"""

    name = "recording"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.records = []

    def send(self, kind, payload, on_result=None):
        from integrity_service.monitor.transport import DeliveryResult

        self.records.append((kind, payload))
        result = DeliveryResult(
            channel=self.name,
            kind=kind,
            ok=not self.fail,
            error="sink unavailable" if self.fail else None
        )
        if on_result is not None:
            on_result(result)

    def kinds(self):
        return [kind for kind, _ in self.records]

    def close(self):
        pass


class RecordingChannel:
    """Proctor channel double"""

    name = "recording_channel"

    def __init__(self, is_open: bool = True):
        self._open = is_open
        self.messages = []

    @property
    def is_open(self) -> bool:
        return self._open

    def send_json(self, data):
        from integrity_service.monitor.transport import DeliveryResult

        if not self._open:
            return DeliveryResult(channel=self.name, kind=data["type"], ok=False, error="channel not open")
        self.messages.append(data)
        return DeliveryResult(channel=self.name, kind=data["type"], ok=True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def student():
    from integrity_service.monitor.models import StudentInfo
    return StudentInfo(id="student123", name="Test Student", exam_id="exam001")


@pytest.fixture
def make_controller(clock, sink, student):
    """Factory for controllers on the fake clock"""
    from integrity_service.monitor.session import SessionController

    def _make(exam_duration_ms=3600000, **kwargs):
        kwargs.setdefault("log_sink", sink)
        kwargs.setdefault("clock", clock)
        return SessionController(exam_duration_ms, student, **kwargs)

    return _make


@pytest.fixture
def keypoints():
    """Build nose/ear keypoints for a given nose offset"""
    from integrity_service.monitor.models import Keypoint

    def _build(nose_x=0.0, nose_y=0.0, left_x=-50.0, right_x=50.0, ear_y=0.0):
        return {
            "nose": Keypoint(nose_x, nose_y),
            "leftEar": Keypoint(left_x, ear_y),
            "rightEar": Keypoint(right_x, ear_y),
        }

    return _build


@pytest.fixture
def app():
    """FastAPI app with a clean session registry and log store"""
    from integrity_service.main import app
    from integrity_service.monitor import api

    api._sessions.clear()
    api.log_store.clear()
    yield app
    api._sessions.clear()
    api.log_store.clear()


@pytest.fixture
def client(app):
    """FastAPI test client"""
    return TestClient(app)
