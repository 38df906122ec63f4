"""Best-effort outbound transport"""

from .sinks import (
    DeliveryResult,
    LogSink,
    LogStore,
    InMemoryLogSink,
    HttpLogSink,
    SINK_PATHS,
    VIOLATION,
    HEAD_ROTATION,
    EXAM_RESULTS,
)
from .proctor import ProctorChannel, ProctorRelay, RelayChannel

__all__ = [
    "DeliveryResult",
    "LogSink",
    "LogStore",
    "InMemoryLogSink",
    "HttpLogSink",
    "SINK_PATHS",
    "VIOLATION",
    "HEAD_ROTATION",
    "EXAM_RESULTS",
    "ProctorChannel",
    "ProctorRelay",
    "RelayChannel",
]
