"""
Proctor Channel - Best-effort alerts to connected proctors

The relay keeps every connected WebSocket and re-broadcasts each
message to all other open clients. Nothing is acknowledged or retried.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from .sinks import DeliveryResult

logger = logging.getLogger(__name__)


class ProctorChannel(ABC):
    """Outbound duplex channel to a proctor"""

    name = "proctor"

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """Whether messages can currently be delivered"""

    @abstractmethod
    def send(self, message: str, kind: str = "message") -> DeliveryResult:
        """Write one serialized message"""

    def send_json(self, data: Dict[str, Any]) -> DeliveryResult:
        """Serialize and send; dropped when the channel is not open"""
        kind = str(data.get("type", "message"))
        if not self.is_open:
            return DeliveryResult(channel=self.name, kind=kind, ok=False, error="channel not open")
        try:
            return self.send(json.dumps(data), kind)
        except Exception as e:
            return DeliveryResult(channel=self.name, kind=kind, ok=False, error=str(e))


class ProctorRelay:
    """
    WebSocket broadcast hub.

    Usage:
        relay = ProctorRelay()
        await relay.connect(websocket)
        await relay.broadcast(message, sender=websocket)
        relay.publish(message)   # from synchronous code
    """

    def __init__(self):
        self._clients: Set[WebSocket] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self._loop = asyncio.get_running_loop()
        self._clients.add(websocket)
        logger.info(f"Proctor connected ({self.client_count} open)")

    def disconnect(self, websocket: WebSocket):
        if websocket in self._clients:
            self._clients.discard(websocket)
            logger.info(f"Proctor disconnected ({self.client_count} open)")

    async def broadcast(self, message: str, sender: Optional[WebSocket] = None) -> int:
        """
        Send a message to every open client except the sender.

        Returns:
            Number of clients the message was written to
        """
        sent = 0
        for client in list(self._clients):
            if client is sender:
                continue
            if client.client_state != WebSocketState.CONNECTED:
                self.disconnect(client)
                continue
            try:
                await client.send_text(message)
                sent += 1
            except Exception as e:
                logger.warning(f"Dropping proctor client after send error: {e}")
                self.disconnect(client)
        return sent

    def publish(self, message: str) -> bool:
        """
        Schedule a broadcast without waiting for it.

        Returns:
            False when there is no client or no running relay loop
        """
        if not self._clients or self._loop is None or self._loop.is_closed():
            return False

        coro = self.broadcast(message)
        try:
            future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        except RuntimeError as e:
            coro.close()
            logger.warning(f"Proctor relay loop unavailable: {e}")
            return False
        future.add_done_callback(self._log_publish_error)
        return True

    @staticmethod
    def _log_publish_error(future):
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning(f"Proctor broadcast failed: {error}")


class RelayChannel(ProctorChannel):
    """ProctorChannel backed by the in-process relay"""

    name = "relay"

    def __init__(self, relay: ProctorRelay):
        self.relay = relay

    @property
    def is_open(self) -> bool:
        return self.relay.client_count > 0

    def send(self, message: str, kind: str = "message") -> DeliveryResult:
        if self.relay.publish(message):
            return DeliveryResult(channel=self.name, kind=kind, ok=True)
        return DeliveryResult(channel=self.name, kind=kind, ok=False, error="relay not running")
