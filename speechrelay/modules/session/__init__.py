"""
Session Module - Black Box Interface

Purpose: Own the lifetime of browser <-> provider relay sessions
Interface: accept_session(), get_session(), get_active_sessions()
Hidden: Task layout, handshake cancellation, counter aggregation

Each inbound connection gets exactly one outbound connection.
"""

from .session import Session, SessionManager

__all__ = ["Session", "SessionManager"]
