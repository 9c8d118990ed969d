"""
Simulated peer connection, data channel and signaling relay for tests.
"""
import asyncio
from typing import Callable, Dict, List, Optional

from peerdraw.core.exceptions import TransportError
from peerdraw.webrtc.envelope import SessionDescription, SignalingEnvelope


class InvalidStateError(Exception):
    pass


class FakeChannel:
    def __init__(self, label: str, ready_state: str = "connecting"):
        self.label = label
        self.readyState = ready_state
        self.sent: List[str] = []
        self.peer: Optional["FakeChannel"] = None
        self._listeners: Dict[str, List[Callable]] = {}

    def on(self, event, handler=None):
        if handler is None:
            def decorator(f):
                self._listeners.setdefault(event, []).append(f)
                return f
            return decorator
        self._listeners.setdefault(event, []).append(handler)
        return handler

    def emit(self, event, *args):
        for listener in list(self._listeners.get(event, [])):
            listener(*args)

    def send(self, data):
        if self.readyState != "open":
            raise InvalidStateError("channel is not open")
        self.sent.append(data)
        if self.peer is not None:
            self.peer.emit("message", data)

    def close(self):
        self.readyState = "closed"
        self.emit("close")


class FakePeerConnection:
    """Signaling-state model of a browser peer connection."""

    def __init__(self, name: str = "pc", auto_negotiate: bool = True):
        self.name = name
        self.auto_negotiate = auto_negotiate
        self.signaling_state = "stable"
        self.ice_connection_state = "new"
        self.local_description: Optional[SessionDescription] = None
        self.remote_description: Optional[SessionDescription] = None
        self.remote: Optional["FakePeerConnection"] = None
        self.channels: List[FakeChannel] = []
        self.candidates = []
        self.calls = []
        self.offers_created = 0
        self.restarts = 0
        self.fail_candidates = False
        self.closed = False
        self._handlers: Dict[str, Callable] = {}

    def on(self, event, handler):
        self._handlers[event] = handler

    def fire(self, event, *args):
        handler = self._handlers.get(event)
        if handler:
            handler(*args)

    def create_data_channel(self, label):
        channel = FakeChannel(label)
        self.channels.append(channel)
        if self.auto_negotiate and len(self.channels) == 1:
            self.fire("negotiationneeded")
        return channel

    async def create_offer(self):
        await asyncio.sleep(0)
        self.offers_created += 1
        return SessionDescription(kind="offer", payload=f"{self.name}-offer-{self.offers_created}")

    async def create_answer(self):
        await asyncio.sleep(0)
        if self.signaling_state != "have-remote-offer":
            raise InvalidStateError(f"cannot answer in {self.signaling_state}")
        return SessionDescription(kind="answer", payload=f"{self.name}-answer")

    async def set_local_description(self, description):
        await asyncio.sleep(0)
        self.calls.append(("local", description.kind))
        if description.kind == "rollback":
            if self.signaling_state != "have-local-offer":
                raise InvalidStateError(f"cannot roll back in {self.signaling_state}")
            self.local_description = None
            self.signaling_state = "stable"
        elif description.kind == "offer":
            if self.signaling_state not in ("stable", "have-local-offer"):
                raise InvalidStateError(f"cannot set local offer in {self.signaling_state}")
            self.local_description = description
            self.signaling_state = "have-local-offer"
        else:
            if self.signaling_state != "have-remote-offer":
                raise InvalidStateError(f"cannot set local answer in {self.signaling_state}")
            self.local_description = description
            self.signaling_state = "stable"
            self._establish()

    async def set_remote_description(self, description):
        await asyncio.sleep(0)
        self.calls.append(("remote", description.kind))
        if description.kind == "offer":
            if self.signaling_state not in ("stable", "have-remote-offer"):
                raise InvalidStateError(f"cannot set remote offer in {self.signaling_state}")
            self.remote_description = description
            self.signaling_state = "have-remote-offer"
        elif description.kind == "answer":
            if self.signaling_state != "have-local-offer":
                raise InvalidStateError(f"cannot set remote answer in {self.signaling_state}")
            self.remote_description = description
            self.signaling_state = "stable"
            self._establish()

    async def add_ice_candidate(self, candidate):
        await asyncio.sleep(0)
        if self.fail_candidates or self.remote_description is None:
            raise InvalidStateError("candidate rejected")
        self.candidates.append(candidate)

    def _establish(self):
        if self.ice_connection_state == "connected":
            return
        self.ice_connection_state = "connected"
        for channel in self.channels:
            channel.readyState = "open"
            if self.remote is not None:
                mirror = FakeChannel(channel.label, ready_state="open")
                mirror.peer = channel
                channel.peer = mirror
                self.remote.fire("datachannel", mirror)
        self.fire("iceconnectionstatechange", "connected")

    def restart_ice(self):
        self.restarts += 1
        self.fire("negotiationneeded")

    async def close(self):
        self.closed = True
        self.signaling_state = "closed"
        self.ice_connection_state = "closed"


def link(a: FakePeerConnection, b: FakePeerConnection):
    a.remote = b
    b.remote = a


class MemoryRelay:
    """Forwards serialized envelopes between joined transports."""

    def __init__(self):
        self.transports: List["MemoryTransport"] = []
        self.forwarded: List[SignalingEnvelope] = []

    def join(self, transport):
        self.transports.append(transport)

    def leave(self, transport):
        if transport in self.transports:
            self.transports.remove(transport)

    def forward(self, sender, text: str):
        for transport in list(self.transports):
            if transport is not sender and transport.is_open:
                self.forwarded.append(SignalingEnvelope.from_json(text))
                transport.deliver(text)

    def answers(self):
        return [e for e in self.forwarded if e.description is not None and e.description.kind == "answer"]


class MemoryTransport:
    def __init__(self, relay: Optional[MemoryRelay] = None, fail: bool = False):
        self.relay = relay or MemoryRelay()
        self.fail = fail
        self.is_open = False
        self.sent: List[SignalingEnvelope] = []
        self.closed_count = 0
        self._receive_handler = None
        self._close_handler = None

    def on_receive(self, handler):
        self._receive_handler = handler

    def on_close(self, handler):
        self._close_handler = handler

    async def connect(self):
        await asyncio.sleep(0)
        if self.fail:
            raise TransportError("relay unreachable")
        self.is_open = True
        self.relay.join(self)

    async def send(self, envelope):
        if not self.is_open:
            raise TransportError("transport is not open")
        self.sent.append(envelope)
        self.relay.forward(self, envelope.to_json())
        await asyncio.sleep(0)

    def deliver(self, text: str):
        if self._receive_handler:
            self._receive_handler(SignalingEnvelope.from_json(text))

    def drop(self):
        self.is_open = False
        self.relay.leave(self)
        if self._close_handler:
            self._close_handler()

    async def close(self):
        self.closed_count += 1
        self.is_open = False
        self.relay.leave(self)


async def settle(rounds: int = 50):
    """Let queued callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)
