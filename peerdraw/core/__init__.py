"""
Core module for peerdraw.
Contains configuration, logging, and common exceptions.
"""

from .config import PeerDrawConfig
from .logging import setup_logging, debug_log, LoggerMixin
from .exceptions import (
    PeerDrawError,
    TransportError,
    NegotiationError,
    IceFailure,
    IceDisconnected,
    MessageError,
)

__all__ = [
    'PeerDrawConfig',
    'setup_logging',
    'debug_log',
    'LoggerMixin',
    'PeerDrawError',
    'TransportError',
    'NegotiationError',
    'IceFailure',
    'IceDisconnected',
    'MessageError',
]
