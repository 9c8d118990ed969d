"""
Custom exception classes for peerdraw.
"""


class PeerDrawError(Exception):
    """Base exception for peerdraw."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{super().__str__()} - {self.details}"
        return super().__str__()


class TransportError(PeerDrawError):
    """Raised when the signaling transport cannot open or drops unexpectedly."""
    pass


class NegotiationError(PeerDrawError):
    """Raised when a session description or candidate is rejected."""
    pass


class IceFailure(PeerDrawError):
    """ICE reported failure; recovered by a single restart."""
    pass


class IceDisconnected(PeerDrawError):
    """ICE reported disconnect; the session is torn down."""
    pass


class MessageError(PeerDrawError):
    """Raised when a signaling or data channel message cannot be decoded."""
    pass
