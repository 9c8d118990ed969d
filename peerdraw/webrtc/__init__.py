"""
WebRTC module for peerdraw.
Handles signaling, perfect negotiation and the drawing data channel.
"""

from .envelope import (
    DrawEvent,
    IceCandidatePayload,
    SessionDescription,
    SignalingEnvelope,
    is_polite,
    new_session_id,
)
from .signaling import SignalingTransport
from .data_channel import DataChannelAdapter
from .peer_connection import AiortcPeerConnection
from .negotiation import ConnectionState, NegotiationEngine, NegotiationFlags

__all__ = [
    'DrawEvent',
    'IceCandidatePayload',
    'SessionDescription',
    'SignalingEnvelope',
    'is_polite',
    'new_session_id',
    'SignalingTransport',
    'DataChannelAdapter',
    'AiortcPeerConnection',
    'ConnectionState',
    'NegotiationEngine',
    'NegotiationFlags'
]
