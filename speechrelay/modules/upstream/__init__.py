"""
Upstream Module - Black Box Interface

Purpose: Open the outbound connection to the transcription provider
Interface: DeepgramConnector.connect()
Hidden: URL building, authorization header, handshake error mapping

Replaceable with any provider that accepts raw audio over a WebSocket.
"""

from .connector import DeepgramConnector, UpstreamConnector

__all__ = ["DeepgramConnector", "UpstreamConnector"]
