"""
Perfect negotiation between two peers.

Every peer-connection callback and every envelope from the relay becomes a
typed event on a single queue. One dispatch task drains the queue through
a handler table, so exactly one event is processed at a time. Offers run
as their own tasks on the same loop and are guarded by ``making_offer``.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

from ..core.config import PeerDrawConfig
from ..core.exceptions import (
    IceDisconnected,
    IceFailure,
    NegotiationError,
    PeerDrawError,
    TransportError,
)
from ..core.logging import LoggerMixin, debug_log
from .data_channel import DataChannelAdapter
from .envelope import (
    IceCandidatePayload,
    SessionDescription,
    SignalingEnvelope,
    is_polite,
    new_session_id,
)
from .peer_connection import AiortcPeerConnection
from .signaling import SignalingTransport


class ConnectionState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    NEGOTIATING = "negotiating"
    CONNECTED = "connected"
    FAILED = "failed"
    DISCONNECTED = "disconnected"


@dataclass
class NegotiationFlags:
    making_offer: bool = False
    ignore_offer: bool = False


# Events fed to the dispatch loop

@dataclass
class RemoteEnvelope:
    envelope: SignalingEnvelope


@dataclass
class NegotiationNeeded:
    pass


@dataclass
class IceStateChanged:
    state: str


@dataclass
class LocalCandidate:
    candidate: Optional[IceCandidatePayload]


@dataclass
class ChannelReceived:
    channel: Any


@dataclass
class ChannelReplaced:
    channel: Any


@dataclass
class TrackReceived:
    track: Any


@dataclass
class TransportClosed:
    pass


StateListener = Callable[[ConnectionState], None]


class NegotiationEngine(LoggerMixin):
    """Owns the peer connection and the transport for one drawing session."""

    def __init__(self, config: Optional[PeerDrawConfig] = None,
                 transport_factory: Optional[Callable[[], Any]] = None,
                 peer_factory: Optional[Callable[[], Any]] = None,
                 id_factory: Callable[[], str] = new_session_id):
        super().__init__()
        self.config = config or PeerDrawConfig()
        self._transport_factory = transport_factory or (
            lambda: SignalingTransport(self.config.get_signaling_url())
        )
        self._peer_factory = peer_factory or (
            lambda: AiortcPeerConnection(self.config.build_rtc_configuration())
        )
        self._id_factory = id_factory

        self.session_id: Optional[str] = None
        self.state = ConnectionState.IDLE
        self.flags = NegotiationFlags()
        self.transport = None
        self.pc = None
        self.data_channel = DataChannelAdapter(self.config.channel_label)

        self.last_error: Optional[PeerDrawError] = None

        self._events: Optional[asyncio.Queue] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self._offer_tasks: Set[asyncio.Task] = set()
        self._restart_pending = False
        self._state_listeners: List[StateListener] = []

        self._handlers: Dict[type, Callable[[Any], Any]] = {
            RemoteEnvelope: lambda event: self.handle_remote_envelope(event.envelope),
            NegotiationNeeded: lambda event: self.on_negotiation_needed(),
            IceStateChanged: lambda event: self.on_ice_state_change(event.state),
            LocalCandidate: lambda event: self.on_local_candidate(event.candidate),
            ChannelReceived: lambda event: self.data_channel.bind_inbound(event.channel),
            ChannelReplaced: lambda event: self.data_channel.attach_outbound(event.channel),
            TrackReceived: self._on_track,
            TransportClosed: lambda event: self.on_transport_closed(),
        }

    # State

    def add_state_listener(self, listener: StateListener):
        self._state_listeners.append(listener)

    def _set_state(self, state: ConnectionState):
        if state == self.state:
            return
        previous, self.state = self.state, state
        debug_log("🔗 [Negotiation] State changed", {
            "session_id": self.session_id,
            "from": previous.value,
            "to": state.value
        })
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                self.log_error("Error in state listener", {"error": str(e), "error_type": type(e).__name__})

    def _refresh_state(self):
        if self.pc is None or self.pc.signaling_state != "stable":
            return
        if self.pc.ice_connection_state in ("connected", "completed"):
            self._restart_pending = False
            self._set_state(ConnectionState.CONNECTED)

    # Lifecycle

    async def connect(self):
        """Open the transport, build the peer connection and start dispatching."""
        if self.pc is not None or self.transport is not None:
            await self._close_resources()

        self.session_id = self._id_factory()
        self.last_error = None
        self.flags = NegotiationFlags()
        self._restart_pending = False
        self._set_state(ConnectionState.CONNECTING)

        transport = self._transport_factory()
        try:
            await transport.connect()
        except TransportError as e:
            self.last_error = e
            self._set_state(ConnectionState.IDLE)
            raise

        self.transport = transport
        self._events = asyncio.Queue()
        transport.on_receive(lambda envelope: self._post(RemoteEnvelope(envelope)))
        transport.on_close(lambda: self._post(TransportClosed()))

        self.pc = self._peer_factory()
        self.pc.on("icecandidate", lambda candidate: self._post(LocalCandidate(candidate)))
        self.pc.on("negotiationneeded", lambda: self._post(NegotiationNeeded()))
        self.pc.on("iceconnectionstatechange", lambda state: self._post(IceStateChanged(state)))
        self.pc.on("datachannel", lambda channel: self._post(ChannelReceived(channel)))
        self.pc.on("channelreplaced", lambda channel: self._post(ChannelReplaced(channel)))
        self.pc.on("track", lambda track: self._post(TrackReceived(track)))

        self._dispatch_task = asyncio.create_task(self._dispatch_loop(self._events))

        self.data_channel.attach_outbound(self.pc.create_data_channel(self.config.channel_label))

        debug_log("🚀 [Negotiation] Session started", {"session_id": self.session_id})

    def _post(self, event):
        if self._events is not None:
            self._events.put_nowait(event)

    async def _dispatch_loop(self, events: asyncio.Queue):
        while self._events is events:
            event = await events.get()
            handler = self._handlers.get(type(event))
            if handler is None:
                self.log_warning("No handler for event", {"event": type(event).__name__})
                continue
            try:
                result = handler(event)
                if asyncio.iscoroutine(result):
                    await result
            except NegotiationError as e:
                self.log_error("Negotiation step rejected", {"error": str(e)})
            except Exception as e:
                self.log_error("Error handling event", {
                    "event": type(event).__name__,
                    "error": str(e),
                    "error_type": type(e).__name__
                })

    async def disconnect(self):
        """Close channel, connection and transport; always ends in idle."""
        await self._close_resources()
        self._set_state(ConnectionState.IDLE)

    async def _close_resources(self):
        self._events = None
        current = asyncio.current_task()

        self.data_channel.close()

        pc, self.pc = self.pc, None
        if pc is not None:
            await pc.close()

        transport, self.transport = self.transport, None
        if transport is not None:
            await transport.close()

        tasks = list(self._offer_tasks) + [self._dispatch_task]
        self._offer_tasks.clear()
        self._dispatch_task = None
        for task in tasks:
            if task is not None and task is not current and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        self.flags = NegotiationFlags()
        self._restart_pending = False

    async def _teardown_remote(self, reason: PeerDrawError):
        self.log_warning("Session ended by remote side", {"reason": str(reason)})
        self.last_error = reason
        self._set_state(ConnectionState.DISCONNECTED)
        await self._close_resources()
        self._set_state(ConnectionState.IDLE)

    # Signaling

    async def _send(self, envelope: SignalingEnvelope):
        if self.transport is None:
            raise TransportError("No signaling transport")
        await self.transport.send(envelope)

    async def on_local_candidate(self, candidate: Optional[IceCandidatePayload]):
        if candidate is None or self.transport is None or not self.transport.is_open:
            return
        await self._send(SignalingEnvelope(id=self.session_id, candidate=candidate))

    def on_negotiation_needed(self):
        self._schedule_offer()

    def _schedule_offer(self):
        if self.flags.making_offer:
            return
        task = asyncio.create_task(self.make_offer())
        self._offer_tasks.add(task)
        task.add_done_callback(self._offer_tasks.discard)

    async def make_offer(self):
        if self.flags.making_offer or self.pc is None:
            return

        pc = self.pc
        try:
            self.flags.making_offer = True
            self._set_state(ConnectionState.NEGOTIATING)
            offer = await pc.create_offer()
            await pc.set_local_description(offer)
            await self._send(SignalingEnvelope(id=self.session_id, description=pc.local_description))
            debug_log("🤝 [Negotiation] Offer sent", {"session_id": self.session_id})
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.log_error("Failed to make offer", {"error": str(e), "error_type": type(e).__name__})
        finally:
            self.flags.making_offer = False

    async def handle_remote_envelope(self, envelope: SignalingEnvelope):
        """Apply one envelope from the remote peer."""
        pc = self.pc
        if pc is None:
            return

        description = envelope.description
        if description is not None:
            polite = is_polite(self.session_id, envelope.id)
            offer_collision = description.kind == "offer" and (
                self.flags.making_offer or pc.signaling_state != "stable"
            )
            self.flags.ignore_offer = not polite and offer_collision

            if self.flags.ignore_offer:
                debug_log("🤝 [Negotiation] Ignoring colliding offer", {
                    "session_id": self.session_id,
                    "remote_id": envelope.id,
                    "making_offer": self.flags.making_offer
                })
                if not self.flags.making_offer:
                    self._schedule_offer()
                return

            if description.kind == "offer":
                self._set_state(ConnectionState.NEGOTIATING)

            try:
                if offer_collision:
                    await asyncio.gather(
                        pc.set_local_description(SessionDescription(kind="rollback")),
                        pc.set_remote_description(description),
                    )
                else:
                    await pc.set_remote_description(description)

                if description.kind == "offer":
                    answer = await pc.create_answer()
                    await pc.set_local_description(answer)
                    await self._send(SignalingEnvelope(id=self.session_id, description=pc.local_description))
                    debug_log("🤝 [Negotiation] Answer sent", {
                        "session_id": self.session_id,
                        "remote_id": envelope.id,
                        "collision": offer_collision
                    })
            except TransportError:
                raise
            except Exception as e:
                raise NegotiationError("Remote description rejected", {
                    "kind": description.kind,
                    "error": str(e)
                }) from e

            self._refresh_state()

        if envelope.candidate is not None:
            try:
                await pc.add_ice_candidate(envelope.candidate)
            except Exception as e:
                if not self.flags.ignore_offer:
                    self.log_warning("Failed to add remote candidate", {"error": str(e)})

    # Connection state

    async def on_ice_state_change(self, state: str):
        if self.pc is None:
            return

        if state in ("connected", "completed"):
            if self.pc.signaling_state == "stable":
                self._restart_pending = False
                self._set_state(ConnectionState.CONNECTED)
        elif state == "failed":
            self._set_state(ConnectionState.FAILED)
            self.last_error = IceFailure("ICE connection failed", {"session_id": self.session_id})
            if self._restart_pending:
                self.log_error("ICE failed again after restart", {"session_id": self.session_id})
                return
            self.log_warning("Restarting ICE", {"session_id": self.session_id})
            self._restart_pending = True
            self._set_state(ConnectionState.NEGOTIATING)
            self.pc.restart_ice()
        elif state == "disconnected":
            await self._teardown_remote(IceDisconnected("ICE connection lost", {"session_id": self.session_id}))

    async def on_transport_closed(self):
        if self.transport is None:
            return
        await self._teardown_remote(TransportError("Signaling relay dropped", {"session_id": self.session_id}))

    def _on_track(self, event: TrackReceived):
        self.log_info("Remote track received; media is not handled", {
            "kind": getattr(event.track, "kind", None)
        })
