"""
Data channel adapter carrying drawing events between the two peers.
"""
from typing import Any, Callable, Optional

from ..core.exceptions import MessageError
from ..core.logging import LoggerMixin, debug_log
from .envelope import DrawEvent

DrawEventCallback = Callable[[DrawEvent], Any]


class DataChannelAdapter(LoggerMixin):
    """
    Binds the outbound channel created on connect and the inbound channel
    delivered by the peer connection. Sending is best-effort: nothing is
    queued while no channel is open.
    """

    def __init__(self, label: str = "canvasData"):
        super().__init__()
        self.label = label
        self._outbound = None
        self._inbound = None
        self._consumer: Optional[DrawEventCallback] = None

    def attach_outbound(self, channel):
        """Bind the locally created channel."""
        self._outbound = channel
        self._setup_channel_handlers(channel)
        self.log_debug("Outbound data channel attached", {"label": channel.label})

    def bind_inbound(self, channel) -> bool:
        """Bind a channel announced by the remote peer if its label matches."""
        if channel.label != self.label:
            self.log_warning("Ignoring data channel with unexpected label", {
                "expected": self.label,
                "received": channel.label
            })
            return False

        self._inbound = channel
        self._setup_channel_handlers(channel)
        debug_log("🔗 [DataChannel] Inbound data channel bound", {"label": channel.label})
        return True

    def _setup_channel_handlers(self, channel):

        @channel.on("message")
        def on_message(message):
            if channel is not self._outbound and channel is not self._inbound:
                return
            self._deliver(message)

        @channel.on("close")
        def on_close():
            self.log_info("Data channel closed", {"label": channel.label})

    def _deliver(self, message):
        try:
            event = DrawEvent.from_json(message)
        except MessageError as e:
            self.log_warning("Dropping malformed draw event", {"error": str(e)})
            return

        if self._consumer:
            try:
                self._consumer(event)
            except Exception as e:
                self.log_error("Error in draw event consumer", {"error": str(e), "error_type": type(e).__name__})

    def on_receive(self, callback: Optional[DrawEventCallback]):
        """Register the consumer of incoming events, replacing any previous one."""
        self._consumer = callback

    @property
    def is_open(self) -> bool:
        return self._open_channel() is not None

    def _open_channel(self):
        for channel in (self._outbound, self._inbound):
            if channel is not None and channel.readyState == "open":
                return channel
        return None

    def send(self, event: DrawEvent) -> bool:
        """Send an event if a channel is open; otherwise silently drop it."""
        channel = self._open_channel()
        if channel is None:
            return False

        channel.send(event.to_json())
        return True

    def close(self):
        for channel in (self._outbound, self._inbound):
            if channel is not None and channel.readyState not in ("closing", "closed"):
                channel.close()
        self._outbound = None
        self._inbound = None
