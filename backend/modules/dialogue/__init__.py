"""
Dialogue module.

Handles session creation, staged execution, persistence and streaming.

Public API:
- IDialogueService: Interface for session operations
- ISessionRepository: Interface for session storage
- DialogueEvent: Event emitted while a session runs
- CreateSessionRequest: Request to create a session
"""

from .interfaces import IDialogueService, ISessionRepository
from .models import (
    CreateSessionRequest,
    DialogueEvent,
    DialogueEventType,
    SessionListItem,
)
from .exceptions import (
    DialogueError,
    SessionNotFoundError,
    StageConflictError,
    InvalidStageTransitionError,
    SessionClosedError,
    SessionAbortedError,
    StageExecutionError,
    ReasonerUnavailableError,
)

__all__ = [
    # Interfaces
    "IDialogueService",
    "ISessionRepository",
    # Models
    "CreateSessionRequest",
    "DialogueEvent",
    "DialogueEventType",
    "SessionListItem",
    # Exceptions
    "DialogueError",
    "SessionNotFoundError",
    "StageConflictError",
    "InvalidStageTransitionError",
    "SessionClosedError",
    "SessionAbortedError",
    "StageExecutionError",
    "ReasonerUnavailableError",
]
