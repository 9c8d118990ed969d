"""
Signaling relay: pairs two websocket clients per room and forwards their
text frames to each other unchanged.
"""
import asyncio
import datetime
from typing import Dict, List, Optional

from aiohttp import WSCloseCode, web

from ..core.config import PeerDrawConfig
from ..core.logging import LoggerMixin, debug_log

MAX_PEERS_PER_ROOM = 2


class SignalingRelay(LoggerMixin):
    """Room-based websocket relay for the signaling envelopes."""

    def __init__(self, config: Optional[PeerDrawConfig] = None):
        super().__init__()
        self.config = config or PeerDrawConfig()
        self.rooms: Dict[str, List[web.WebSocketResponse]] = {}
        self.forwarded_count = 0
        self._runner: Optional[web.AppRunner] = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app['relay'] = self
        app.router.add_get("/socket", self.handle_socket)
        app.router.add_get("/status", self.handle_status)
        return app

    async def handle_socket(self, request: web.Request) -> web.WebSocketResponse:
        room = request.query.get("room", "default")
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        peers = self.rooms.setdefault(room, [])
        if len(peers) >= MAX_PEERS_PER_ROOM:
            self.log_warning("Room full, rejecting client", {"room": room})
            await ws.close(code=WSCloseCode.POLICY_VIOLATION, message=b"room full")
            return ws

        peers.append(ws)
        debug_log("🔌 [Relay] Client joined", {
            "room": room,
            "peers": len(peers),
            "timestamp": datetime.datetime.now().isoformat()
        })

        try:
            async for msg in ws:
                if msg.type == web.WSMsgType.TEXT:
                    await self._forward(room, ws, msg.data)
                elif msg.type == web.WSMsgType.ERROR:
                    self.log_error("Relay websocket error", {
                        "room": room,
                        "error": str(ws.exception())
                    })
                    break
        finally:
            peers.remove(ws)
            if not peers:
                self.rooms.pop(room, None)
            debug_log("🔌 [Relay] Client left", {"room": room, "peers": len(peers)})

        return ws

    async def _forward(self, room: str, sender: web.WebSocketResponse, data: str):
        for peer in list(self.rooms.get(room, [])):
            if peer is sender or peer.closed:
                continue
            try:
                await peer.send_str(data)
            except ConnectionResetError as e:
                self.log_warning("Could not forward to closing peer", {"room": room, "error": str(e)})
                continue
            self.forwarded_count += 1

    async def handle_status(self, request: web.Request) -> web.Response:
        return web.json_response({
            "rooms": {room: len(peers) for room, peers in self.rooms.items()},
            "forwarded": self.forwarded_count
        })

    async def start(self, host: Optional[str] = None, port: Optional[int] = None):
        host = host or self.config.relay_host
        port = port or self.config.relay_port

        self._runner = web.AppRunner(self.create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        debug_log("🌐 [Relay] Signaling relay listening", {"host": host, "port": port})

    async def stop(self):
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None


async def run_relay(config: PeerDrawConfig, host: Optional[str] = None, port: Optional[int] = None):
    relay = SignalingRelay(config)
    await relay.start(host, port)
    try:
        await asyncio.Future()
    finally:
        await relay.stop()
