"""
Dialogue module data models.

Request and transport models for the session service. The session itself
and everything it records live in core.models.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from core.models import (
    ConsensusResult,
    DialogueStage,
    Language,
    PersonalityProfile,
    SessionStatus,
    StageResponse,
)


class CreateSessionRequest(BaseModel):
    """Request to create a new dialogue session."""

    agents: list[PersonalityProfile] = Field(
        ...,
        min_length=2,
        description="Participating agents in speaking order",
    )
    title: str = Field(default="", max_length=200, description="Optional title")
    language: Optional[Language] = Field(
        None,
        description="Output language (defaults to the dialogue settings)",
    )


class SessionListItem(BaseModel):
    """Summary of a session for listing."""

    id: str
    title: str
    status: SessionStatus
    current_stage: Optional[DialogueStage] = None
    sequence_number: int = 1
    agent_count: int = 0
    updated_at: datetime


# SSE Event Types

class DialogueEventType(str, Enum):
    """Types of events emitted while a session runs."""

    # Lifecycle events
    SESSION_STARTED = "session_started"
    SESSION_COMPLETED = "session_completed"
    SESSION_ERRORED = "session_errored"
    SESSION_ABORTED = "session_aborted"

    # Stage events
    STAGE_STARTED = "stage_started"
    AGENT_COMPLETED = "agent_completed"
    STAGE_COMPLETED = "stage_completed"

    # Finalize
    CONSENSUS_RESOLVED = "consensus_resolved"


class DialogueEvent(BaseModel):
    """
    Event emitted during session execution.

    These events are handed to the presentation layer (CLI, SSE stream)
    as each stage and agent finishes.
    """

    type: DialogueEventType = Field(..., description="Event type")
    session_id: str = Field(..., description="Session ID")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Event timestamp",
    )

    # Optional fields depending on event type
    stage: Optional[DialogueStage] = Field(None, description="Stage")
    sequence_number: Optional[int] = Field(None, description="Cycle number")
    agent_id: Optional[str] = Field(None, description="Agent that finished")
    response: Optional[StageResponse] = Field(
        None,
        description="Agent response (for agent_completed)",
    )
    consensus: Optional[ConsensusResult] = Field(
        None,
        description="Vote resolution (for consensus_resolved)",
    )
    summary: Optional[str] = Field(None, description="Stage summary, if any")
    progress: Optional[dict[str, Any]] = Field(None, description="Progress info")
    error: Optional[str] = Field(None, description="Error message")

    def to_sse(self) -> str:
        """Convert to SSE format."""
        data = self.model_dump(mode="json", exclude_none=True)
        return f"event: {self.type.value}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"
