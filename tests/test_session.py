"""Tests covering the session controller and two-peer sessions."""
import asyncio

import pytest

from peerdraw.core.config import PeerDrawConfig
from peerdraw.core.exceptions import TransportError
from peerdraw.services.session import SessionController
from peerdraw.services.strokes import StrokeAssembler, stroke_events
from peerdraw.webrtc.envelope import DrawEvent
from peerdraw.webrtc.negotiation import ConnectionState

from tests.fakes import FakePeerConnection, MemoryRelay, MemoryTransport, link, settle


def make_session(relay, pc, session_id):
    return SessionController(
        PeerDrawConfig(),
        transport_factory=lambda: MemoryTransport(relay),
        peer_factory=lambda: pc,
        id_factory=lambda: session_id,
    )


def test_connect_is_idempotent() -> None:
    async def runner() -> None:
        transports = []

        def make_transport():
            transports.append(MemoryTransport())
            return transports[-1]

        session = SessionController(
            PeerDrawConfig(),
            transport_factory=make_transport,
            peer_factory=lambda: FakePeerConnection(auto_negotiate=False),
        )
        await session.connect()
        first_id = session.session_id
        await session.connect()

        assert len(transports) == 1
        assert session.session_id == first_id
        assert session.status == ConnectionState.CONNECTING

        await session.disconnect()

    asyncio.run(runner())


def test_transport_failure_allows_fresh_connect() -> None:
    async def runner() -> None:
        transports = iter([MemoryTransport(fail=True), MemoryTransport()])
        session = SessionController(
            PeerDrawConfig(),
            transport_factory=lambda: next(transports),
            peer_factory=lambda: FakePeerConnection(auto_negotiate=False),
        )

        with pytest.raises(TransportError):
            await session.connect()
        assert session.status == ConnectionState.IDLE
        assert isinstance(session.last_error, TransportError)

        await session.connect()
        assert session.status == ConnectionState.CONNECTING

        await session.disconnect()

    asyncio.run(runner())


def test_send_before_connect_is_silent() -> None:
    session = SessionController(PeerDrawConfig(), peer_factory=FakePeerConnection)
    assert session.send(DrawEvent(1, 2)) is False


def test_disconnect_twice_resets_to_idle() -> None:
    async def runner() -> None:
        pc = FakePeerConnection()
        session = make_session(MemoryRelay(), pc, "solo")
        await session.connect()
        await settle()

        await session.disconnect()
        await session.disconnect()

        assert session.status == ConnectionState.IDLE
        assert pc.closed
        assert all(channel.readyState == "closed" for channel in pc.channels)

    asyncio.run(runner())


def test_simultaneous_negotiation_produces_single_answer() -> None:
    async def runner() -> None:
        relay = MemoryRelay()
        pc_a = FakePeerConnection("a", auto_negotiate=False)
        pc_b = FakePeerConnection("b", auto_negotiate=False)
        link(pc_a, pc_b)
        peer_a = make_session(relay, pc_a, "peer-a")
        peer_b = make_session(relay, pc_b, "peer-b")

        await peer_a.connect()
        await peer_b.connect()
        await settle()

        pc_a.fire("negotiationneeded")
        pc_b.fire("negotiationneeded")
        await settle(200)

        offers = [e for e in relay.forwarded if e.description and e.description.kind == "offer"]
        assert len(offers) == 2
        assert len(relay.answers()) == 1
        assert peer_a.status == ConnectionState.CONNECTED
        assert peer_b.status == ConnectionState.CONNECTED

        await peer_a.disconnect()
        await peer_b.disconnect()

    asyncio.run(runner())


@pytest.mark.parametrize("ids", [("peer-a", "peer-b"), ("peer-b", "peer-a")])
def test_late_joiner_connects_with_single_answer(ids) -> None:
    async def runner() -> None:
        relay = MemoryRelay()
        pc_a = FakePeerConnection("a")
        pc_b = FakePeerConnection("b")
        link(pc_a, pc_b)
        peer_a = make_session(relay, pc_a, ids[0])
        peer_b = make_session(relay, pc_b, ids[1])

        # the first offer goes nowhere: nobody else is at the relay yet
        await peer_a.connect()
        await settle()
        assert relay.forwarded == []

        await peer_b.connect()
        await settle(300)

        assert len(relay.answers()) == 1
        assert peer_a.status == ConnectionState.CONNECTED
        assert peer_b.status == ConnectionState.CONNECTED

        await peer_a.disconnect()
        await peer_b.disconnect()

    asyncio.run(runner())


def test_strokes_flow_between_connected_peers() -> None:
    async def runner() -> None:
        relay = MemoryRelay()
        pc_a = FakePeerConnection("a")
        pc_b = FakePeerConnection("b")
        link(pc_a, pc_b)
        peer_a = make_session(relay, pc_a, "peer-a")
        peer_b = make_session(relay, pc_b, "peer-b")
        strokes_a = StrokeAssembler()
        strokes_b = StrokeAssembler()
        peer_a.on_receive(strokes_a)
        peer_b.on_receive(strokes_b)

        await peer_a.connect()
        await settle()
        await peer_b.connect()
        await settle(300)

        for event in stroke_events([(1.0, 2.0), (3.0, 4.0), (5.0, 6.0)]):
            assert peer_a.send(event)
        for event in stroke_events([(9.0, 9.0)]):
            assert peer_b.send(event)

        assert strokes_b.strokes == [[(1.0, 2.0), (3.0, 4.0), (5.0, 6.0)]]
        assert strokes_a.strokes == [[(9.0, 9.0)]]

        await peer_a.disconnect()
        await peer_b.disconnect()

        assert peer_a.send(DrawEvent(0, 0)) is False

    asyncio.run(runner())
