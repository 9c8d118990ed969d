"""
peerdraw: two-peer collaborative drawing over a WebRTC data channel.
"""

__version__ = "0.1.0"
