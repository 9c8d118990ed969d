"""
Signaling transport: a websocket pipe to the relay carrying JSON envelopes.
"""
import asyncio
from typing import Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from ..core.exceptions import MessageError, TransportError
from ..core.logging import LoggerMixin, debug_log
from .envelope import SignalingEnvelope

EnvelopeHandler = Callable[[SignalingEnvelope], None]


class SignalingTransport(LoggerMixin):
    """Websocket client for the signaling relay."""

    def __init__(self, url: str):
        super().__init__()
        self.url = url
        self._websocket = None
        self._listen_task: Optional[asyncio.Task] = None
        self._receive_handler: Optional[EnvelopeHandler] = None
        self._close_handler: Optional[Callable[[], None]] = None
        self._open = False
        self._closing = False

    @property
    def is_open(self) -> bool:
        return self._open

    def on_receive(self, handler: EnvelopeHandler):
        """Register the single consumer of parsed envelopes."""
        self._receive_handler = handler

    def on_close(self, handler: Callable[[], None]):
        """Register the callback fired when the relay drops the connection."""
        self._close_handler = handler

    async def connect(self):
        """Open the websocket; returns only once the pipe is ready."""
        debug_log("📡 [Signaling] Connecting to relay", {"url": self.url})
        try:
            self._websocket = await websockets.connect(
                self.url,
                ping_interval=30,
                ping_timeout=10,
                close_timeout=10
            )
        except (OSError, WebSocketException) as e:
            raise TransportError("Signaling relay unreachable", {"url": self.url, "error": str(e)}) from e

        self._open = True
        self._closing = False
        self._listen_task = asyncio.create_task(self._listen(self._websocket))
        debug_log("✅ [Signaling] Relay connection open", {"url": self.url})

    async def send(self, envelope: SignalingEnvelope):
        """Serialize and transmit an envelope."""
        if not self._open:
            raise TransportError("Signaling transport is not open", {"url": self.url})
        try:
            await self._websocket.send(envelope.to_json())
        except ConnectionClosed as e:
            raise TransportError("Signaling transport closed during send", {"error": str(e)}) from e

    async def _listen(self, websocket):
        try:
            async for message in websocket:
                if isinstance(message, bytes):
                    message = message.decode("utf-8", errors="replace")
                try:
                    envelope = SignalingEnvelope.from_json(message)
                except MessageError as e:
                    self.log_warning("Dropping malformed envelope", {
                        "error": str(e),
                        "message": message[:200]
                    })
                    continue

                if self._receive_handler:
                    self._receive_handler(envelope)
        except ConnectionClosed as e:
            self.log_warning("Relay connection closed", {"code": e.rcvd.code if e.rcvd else None})
        finally:
            self._open = False
            if not self._closing and self._close_handler:
                self._close_handler()

    async def close(self):
        """Close the pipe without reporting a drop; safe to call twice."""
        self._closing = True
        self._open = False

        websocket, self._websocket = self._websocket, None
        if websocket is not None:
            await websocket.close()

        task, self._listen_task = self._listen_task, None
        if task and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        debug_log("🔌 [Signaling] Relay connection closed", {"url": self.url})
