"""
Services module for peerdraw.
Session control, stroke assembly and the signaling relay.
"""

from .session import SessionController
from .strokes import StrokeAssembler, stroke_events
from .relay import SignalingRelay, run_relay

__all__ = [
    'SessionController',
    'StrokeAssembler',
    'stroke_events',
    'SignalingRelay',
    'run_relay'
]
