"""
Log Sinks - Best-effort delivery of violation, rotation and results records

Sinks never raise and never retry. Every send reports a DeliveryResult
to the optional callback so the host can observe failures.
"""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)


VIOLATION = "violation"
HEAD_ROTATION = "head_rotation"
EXAM_RESULTS = "exam_results"

SINK_PATHS: Dict[str, str] = {
    VIOLATION: "/api/log-violation",
    HEAD_ROTATION: "/api/log-head-rotation",
    EXAM_RESULTS: "/api/save-exam-results",
}


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one best-effort transport call"""
    channel: str
    kind: str
    ok: bool
    error: Optional[str] = None


DeliveryCallback = Callable[[DeliveryResult], None]


class LogSink(ABC):
    """Base class for fire-and-forget log sinks"""

    name = "log_sink"

    @abstractmethod
    def send(self, kind: str, payload: Dict[str, Any], on_result: Optional[DeliveryCallback] = None):
        """Deliver one record; never raises"""

    def close(self):
        pass

    def _report(self, result: DeliveryResult, on_result: Optional[DeliveryCallback]):
        if not result.ok:
            logger.warning(f"{self.name}: failed to deliver {result.kind}: {result.error}")
        if on_result is not None:
            on_result(result)


class LogStore:
    """
    Thread-safe in-memory record store.

    Backs the /api/log-* endpoints and the in-process sink.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: List[Dict[str, Any]] = []

    def record(self, kind: str, payload: Dict[str, Any]):
        entry = {
            "kind": kind,
            "received_at": datetime.now(timezone.utc).isoformat(),
            "payload": payload
        }
        with self._lock:
            self._entries.append(entry)
        logger.info(f"{kind}: {payload}")

    def entries(self, kind: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            if kind is None:
                return list(self._entries)
            return [e for e in self._entries if e["kind"] == kind]

    def clear(self):
        with self._lock:
            self._entries = []


class InMemoryLogSink(LogSink):
    """Writes records straight into a LogStore"""

    name = "memory"

    def __init__(self, store: Optional[LogStore] = None):
        self.store = store or LogStore()

    def send(self, kind: str, payload: Dict[str, Any], on_result: Optional[DeliveryCallback] = None):
        try:
            self.store.record(kind, payload)
            result = DeliveryResult(channel=self.name, kind=kind, ok=True)
        except Exception as e:
            result = DeliveryResult(channel=self.name, kind=kind, ok=False, error=str(e))
        self._report(result, on_result)


class HttpLogSink(LogSink):
    """
    Posts records to a remote logging backend.

    Requests run on a small thread pool so callers never wait on the
    network. Non-2xx responses and transport errors are reported as
    failed deliveries and dropped.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        max_workers: int = 4,
        client: Optional[httpx.Client] = None
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(base_url=self.base_url, timeout=timeout)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="log-sink")

    def send(self, kind: str, payload: Dict[str, Any], on_result: Optional[DeliveryCallback] = None):
        self._executor.submit(self._post, kind, payload, on_result)

    def _post(self, kind: str, payload: Dict[str, Any], on_result: Optional[DeliveryCallback]):
        path = SINK_PATHS.get(kind)
        if path is None:
            result = DeliveryResult(channel=self.name, kind=kind, ok=False, error=f"unknown record kind: {kind}")
        else:
            try:
                response = self._client.post(path, json=payload)
                response.raise_for_status()
                result = DeliveryResult(channel=self.name, kind=kind, ok=True)
            except httpx.HTTPError as e:
                result = DeliveryResult(channel=self.name, kind=kind, ok=False, error=str(e))

        try:
            self._report(result, on_result)
        except Exception as e:
            logger.error(f"Delivery callback error: {e}")

    def close(self):
        self._executor.shutdown(wait=True)
        self._client.close()
