"""
Session controller: the public face of a drawing session.
"""
from typing import Any, Callable, Optional

from ..core.config import PeerDrawConfig
from ..core.exceptions import PeerDrawError, TransportError
from ..core.logging import LoggerMixin, debug_log
from ..webrtc.envelope import DrawEvent, new_session_id
from ..webrtc.negotiation import ConnectionState, NegotiationEngine


class SessionController(LoggerMixin):
    """Connects, sends and receives drawing events for one peer."""

    def __init__(self, config: Optional[PeerDrawConfig] = None,
                 transport_factory: Optional[Callable[[], Any]] = None,
                 peer_factory: Optional[Callable[[], Any]] = None,
                 id_factory: Callable[[], str] = new_session_id):
        super().__init__()
        self.config = config or PeerDrawConfig()
        self.engine = NegotiationEngine(
            self.config,
            transport_factory=transport_factory,
            peer_factory=peer_factory,
            id_factory=id_factory,
        )

    @property
    def status(self) -> ConnectionState:
        return self.engine.state

    @property
    def session_id(self) -> Optional[str]:
        return self.engine.session_id

    @property
    def last_error(self) -> Optional[PeerDrawError]:
        return self.engine.last_error

    def on_status_change(self, callback: Callable[[ConnectionState], None]):
        self.engine.add_state_listener(callback)

    async def connect(self):
        """Start a session unless one is already in progress."""
        if self.engine.state != ConnectionState.IDLE:
            debug_log("🎨 [Session] Connect ignored, session already in progress", {
                "session_id": self.engine.session_id,
                "status": self.engine.state.value
            })
            return

        try:
            await self.engine.connect()
        except TransportError as e:
            self.log_error("Could not reach signaling relay", {"error": str(e)})
            await self.engine.disconnect()
            raise

    def send(self, event: DrawEvent) -> bool:
        """Forward a local drawing event; dropped while no channel is open."""
        return self.engine.data_channel.send(event)

    def on_receive(self, callback: Optional[Callable[[DrawEvent], Any]]):
        """Register the single consumer of remote drawing events."""
        self.engine.data_channel.on_receive(callback)

    async def disconnect(self):
        await self.engine.disconnect()
        debug_log("🔌 [Session] Disconnected", {"session_id": self.engine.session_id})
