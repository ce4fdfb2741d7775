"""
SpeechRelay HTTP response models.
"""

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field


class SessionSummary(BaseModel):
    """Snapshot of one active relay session."""

    session_id: str
    state: str = Field(..., description="Provider leg state: connecting, open or closed")
    created_at: datetime
    frames_forwarded: int = 0
    frames_dropped: int = 0
    messages_forwarded: int = 0


class HealthResponse(BaseModel):
    """Health check payload."""

    status: str
    active_sessions: int = Field(..., ge=0)
    upstream: str = Field(..., description="Host of the transcription provider")
    version: str


class SessionListResponse(BaseModel):
    sessions: List[SessionSummary] = Field(default_factory=list)
    total: int = 0
