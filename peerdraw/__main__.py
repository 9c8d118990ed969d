"""
Main entry point for peerdraw.
Run with: python -m peerdraw relay | python -m peerdraw peer
"""
import argparse
import asyncio
import sys

from .core.config import PeerDrawConfig
from .core.exceptions import TransportError
from .core.logging import setup_logging, debug_log
from .services.relay import run_relay
from .services.session import SessionController
from .services.strokes import StrokeAssembler, stroke_events

DEMO_STROKE = [(20.0, 20.0), (60.0, 40.0), (100.0, 20.0), (140.0, 40.0)]


async def run_peer(config: PeerDrawConfig, demo: bool):
    """Headless peer: logs remote strokes and optionally draws one."""
    session = SessionController(config)
    assembler = StrokeAssembler(
        on_stroke=lambda stroke: debug_log("🎨 [Peer] Remote stroke", {"points": stroke})
    )
    session.on_receive(assembler)

    connected = asyncio.Event()

    def on_status(status):
        debug_log(f"🔗 [Peer] Status: {status.value}")
        if status.value == "connected":
            connected.set()

    session.on_status_change(on_status)

    await session.connect()
    try:
        if demo:
            await connected.wait()
            for event in stroke_events(DEMO_STROKE):
                session.send(event)
        await asyncio.Future()
    finally:
        await session.disconnect()


def main(argv=None):
    parser = argparse.ArgumentParser(prog="peerdraw")
    sub = parser.add_subparsers(dest="command", required=True)

    relay = sub.add_parser("relay", help="run the signaling relay")
    relay.add_argument("--host")
    relay.add_argument("--port", type=int)

    peer = sub.add_parser("peer", help="run a headless drawing peer")
    peer.add_argument("--url", help="signaling relay websocket URL")
    peer.add_argument("--room")
    peer.add_argument("--demo", action="store_true", help="draw a demo stroke once connected")

    args = parser.parse_args(argv)

    config = PeerDrawConfig()
    setup_logging(level=config.log_level, log_dir=config.log_dir)

    try:
        if args.command == "relay":
            asyncio.run(run_relay(config, args.host, args.port))
        else:
            if args.url:
                config.signaling_url = args.url
            if args.room:
                config.room = args.room
            asyncio.run(run_peer(config, args.demo))
    except KeyboardInterrupt:
        pass
    except TransportError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
