"""
Relay Module - Black Box Interface

Purpose: Forward audio browser -> provider and transcripts provider -> browser
Interface: RelayPump (on_* event coroutines), ClientLeg, UpstreamLeg
Hidden: Readiness guards, JSON inspection, close-code translation

Any transport can be plugged in as long as it offers the Leg surface.
"""

from .legs import ClientLeg, Leg, Payload, UpstreamLeg
from .relay import (
    INTERNAL_ERROR,
    UPSTREAM_ERROR_REASON,
    RelayPump,
    RelayStats,
    UpstreamState,
    sendable_close_code,
)

__all__ = [
    "ClientLeg",
    "Leg",
    "Payload",
    "UpstreamLeg",
    "INTERNAL_ERROR",
    "UPSTREAM_ERROR_REASON",
    "RelayPump",
    "RelayStats",
    "UpstreamState",
    "sendable_close_code",
]
