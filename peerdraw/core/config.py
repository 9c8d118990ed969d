"""
Configuration management for peerdraw.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional

from aiortc import RTCConfiguration, RTCIceServer

DEFAULT_STUN_URLS = "stun:stun1.l.google.com:19302,stun:stun2.l.google.com:19302"


@dataclass
class PeerDrawConfig:
    """Peer and relay configuration settings."""

    # Signaling
    signaling_url: str = "ws://localhost:8765/socket"
    room: str = "default"

    # ICE servers
    stun_urls: List[str] = field(default_factory=list)
    turn_url: Optional[str] = None
    turn_username: Optional[str] = None
    turn_password: Optional[str] = None

    # Data channel
    channel_label: str = "canvasData"

    # Relay server
    relay_host: str = "0.0.0.0"
    relay_port: int = 8765

    # Logging
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    def __post_init__(self):
        """Initialize configuration from environment variables."""
        self.signaling_url = os.environ.get('PEERDRAW_SIGNALING_URL', self.signaling_url)
        self.room = os.environ.get('PEERDRAW_ROOM', self.room)

        stun = os.environ.get('PEERDRAW_STUN_URLS')
        if stun is not None:
            self.stun_urls = _split_urls(stun)
        elif not self.stun_urls:
            self.stun_urls = _split_urls(DEFAULT_STUN_URLS)

        self.turn_url = os.environ.get('PEERDRAW_TURN_URL', self.turn_url)
        self.turn_username = os.environ.get('PEERDRAW_TURN_USERNAME', self.turn_username)
        self.turn_password = os.environ.get('PEERDRAW_TURN_PASSWORD', self.turn_password)

        self.channel_label = os.environ.get('PEERDRAW_CHANNEL_LABEL', self.channel_label)

        self.relay_host = os.environ.get('PEERDRAW_RELAY_HOST', self.relay_host)
        self.relay_port = int(os.environ.get('PEERDRAW_RELAY_PORT', self.relay_port))

        self.log_level = os.environ.get('PEERDRAW_LOG_LEVEL', self.log_level)
        self.log_dir = os.environ.get('PEERDRAW_LOG_DIR', self.log_dir)

    def build_rtc_configuration(self) -> RTCConfiguration:
        """Build the aiortc configuration from the configured ICE servers."""
        ice_servers = [RTCIceServer(urls=url) for url in self.stun_urls]

        if self.turn_url:
            ice_servers.append(
                RTCIceServer(
                    urls=self.turn_url,
                    username=self.turn_username,
                    credential=self.turn_password
                )
            )

        return RTCConfiguration(iceServers=ice_servers)

    def get_signaling_url(self, room: Optional[str] = None) -> str:
        """Signaling URL with the room appended as a query parameter."""
        sep = "&" if "?" in self.signaling_url else "?"
        return f"{self.signaling_url}{sep}room={room or self.room}"

    def __str__(self) -> str:
        return (f"PeerDrawConfig(signaling_url={self.signaling_url}, room={self.room}, "
                f"ice_servers={len(self.stun_urls) + (1 if self.turn_url else 0)})")


def _split_urls(value: str) -> List[str]:
    return [url.strip() for url in value.split(',') if url.strip()]
