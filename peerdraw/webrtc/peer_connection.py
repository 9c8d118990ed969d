"""
aiortc-backed peer connection with the browser-style surface the
negotiation engine drives.
"""
from typing import Any, Callable, Dict, List, Optional

from aiortc import RTCConfiguration, RTCPeerConnection, RTCSessionDescription
from aiortc.sdp import candidate_from_sdp

from ..core.logging import LoggerMixin, debug_log
from .envelope import IceCandidatePayload, SessionDescription

PEER_EVENTS = (
    "icecandidate",
    "negotiationneeded",
    "iceconnectionstatechange",
    "datachannel",
    "channelreplaced",
    "track",
)


class AiortcPeerConnection(LoggerMixin):
    """
    Wraps ``RTCPeerConnection`` and fills the gaps aiortc leaves:

    - ``negotiationneeded`` fires when the first data channel is created
      and on ``restart_ice()``; aiortc never emits it.
    - Rollback of a local offer rebuilds the underlying connection and
      recreates its data channels (reported through ``channelreplaced``);
      aiortc rejects ``rollback`` descriptions.
    - Candidates are gathered into the SDP, so ``icecandidate`` is never
      fired locally; remote trickle candidates are still accepted.
    """

    def __init__(self, configuration: Optional[RTCConfiguration] = None):
        super().__init__()
        self._configuration = configuration
        self._handlers: Dict[str, Callable[..., Any]] = {}
        self._channel_labels: List[str] = []
        self._closed = False
        self._pc = self._build()

    def on(self, event: str, handler: Callable[..., Any]):
        """Register the single handler for a peer event."""
        if event not in PEER_EVENTS:
            raise ValueError(f"Unknown peer event: {event}")
        self._handlers[event] = handler

    def _emit(self, event: str, *args):
        handler = self._handlers.get(event)
        if handler:
            handler(*args)

    def _build(self) -> RTCPeerConnection:
        pc = RTCPeerConnection(configuration=self._configuration)

        @pc.on("iceconnectionstatechange")
        def on_ice_connection_state_change():
            if pc is not self._pc or pc.iceConnectionState == "closed":
                return
            self._emit("iceconnectionstatechange", pc.iceConnectionState)

        @pc.on("connectionstatechange")
        def on_connection_state_change():
            if pc is not self._pc or self._closed:
                return
            if pc.connectionState == "connected":
                self._emit("iceconnectionstatechange", "connected")
            elif pc.connectionState == "closed":
                self._emit("iceconnectionstatechange", "disconnected")

        @pc.on("datachannel")
        def on_datachannel(channel):
            self._emit("datachannel", channel)

        @pc.on("track")
        def on_track(track):
            self._emit("track", track)

        return pc

    @property
    def signaling_state(self) -> str:
        return self._pc.signalingState

    @property
    def ice_connection_state(self) -> str:
        if self._pc.connectionState == "connected":
            return "connected"
        return self._pc.iceConnectionState

    @property
    def local_description(self) -> Optional[SessionDescription]:
        description = self._pc.localDescription
        if description is None:
            return None
        return SessionDescription(kind=description.type, payload=description.sdp)

    def create_data_channel(self, label: str):
        channel = self._pc.createDataChannel(label, ordered=True)
        first = not self._channel_labels
        self._channel_labels.append(label)
        if first:
            self._emit("negotiationneeded")
        return channel

    async def create_offer(self) -> SessionDescription:
        offer = await self._pc.createOffer()
        return SessionDescription(kind=offer.type, payload=offer.sdp)

    async def create_answer(self) -> SessionDescription:
        answer = await self._pc.createAnswer()
        return SessionDescription(kind=answer.type, payload=answer.sdp)

    async def set_local_description(self, description: SessionDescription):
        if description.kind == "rollback":
            await self._rollback()
            return
        await self._pc.setLocalDescription(
            RTCSessionDescription(sdp=description.payload, type=description.kind)
        )

    async def set_remote_description(self, description: SessionDescription):
        pc = self._pc
        if description.kind == "rollback":
            await self._rollback()
            return
        await pc.setRemoteDescription(
            RTCSessionDescription(sdp=description.payload, type=description.kind)
        )

    async def _rollback(self):
        if self._pc.signalingState == "stable":
            return

        debug_log("↩️ [PeerConnection] Rolling back by rebuilding connection", {
            "signaling_state": self._pc.signalingState,
            "channels": list(self._channel_labels)
        })

        previous = self._pc
        self._pc = self._build()
        for label in self._channel_labels:
            self._emit("channelreplaced", self._pc.createDataChannel(label, ordered=True))
        await previous.close()

    async def add_ice_candidate(self, candidate: IceCandidatePayload):
        sdp = candidate.payload
        if sdp.startswith("candidate:"):
            sdp = sdp[len("candidate:"):]
        if not sdp:
            # end-of-candidates marker
            return

        ice_candidate = candidate_from_sdp(sdp)
        ice_candidate.sdpMid = candidate.media_id
        ice_candidate.sdpMLineIndex = candidate.line_index
        await self._pc.addIceCandidate(ice_candidate)

    def restart_ice(self):
        """aiortc cannot restart ICE; renegotiate over the existing connection."""
        self.log_warning("ICE restart requested, renegotiating without new credentials")
        self._emit("negotiationneeded")

    async def close(self):
        if self._closed:
            return
        self._closed = True
        await self._pc.close()
