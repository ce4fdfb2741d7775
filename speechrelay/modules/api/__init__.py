"""
API Module - Black Box Interface

Purpose: Response models for the HTTP surface
Interface: HealthResponse, SessionSummary, SessionListResponse
"""

from .models import HealthResponse, SessionListResponse, SessionSummary

__all__ = ["HealthResponse", "SessionListResponse", "SessionSummary"]
