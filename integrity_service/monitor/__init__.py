"""
Exam Integrity Monitor

Watches a remote exam-taker for integrity violations:
- Face absence beyond a grace window
- Sustained head rotation away from the screen
- Fullscreen exit, tab switches, restricted shortcuts
- Prolonged pointer inactivity

Three violations end the session.
"""

from .api import router, sink_router, relay_router
from .session import SessionController
from .runner import MonitorRunner, SignalSampler

__all__ = [
    "router",
    "sink_router",
    "relay_router",
    "SessionController",
    "MonitorRunner",
    "SignalSampler",
]
