"""
Dialogue module exceptions.
"""

from typing import Optional

from shared.exceptions import (
    PolyphonyError,
    NotFoundError,
    ValidationError,
    ExternalServiceError,
)


class DialogueError(PolyphonyError):
    """Base exception for dialogue-related errors."""

    pass


class SessionNotFoundError(NotFoundError):
    """Raised when a session is not found."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session not found: {session_id}",
            code="SESSION_NOT_FOUND",
            details={"session_id": session_id},
        )


class StageConflictError(ValidationError):
    """Raised when a session is already being advanced by another caller."""

    def __init__(self, session_id: str):
        super().__init__(
            f"Session is already advancing a stage: {session_id}",
            code="STAGE_CONFLICT",
            details={"session_id": session_id},
        )


class InvalidStageTransitionError(ValidationError):
    """Raised when a stage is requested out of order."""

    def __init__(
        self,
        session_id: str,
        current_stage: Optional[str],
        requested_stage: str,
        expected_stage: Optional[str] = None,
    ):
        super().__init__(
            f"Cannot run {requested_stage} after {current_stage or 'start'} "
            f"in session {session_id}",
            code="INVALID_STAGE_TRANSITION",
            details={
                "session_id": session_id,
                "current_stage": current_stage,
                "requested_stage": requested_stage,
                "expected_stage": expected_stage,
            },
        )


class SessionClosedError(ValidationError):
    """Raised when advancing a session that is errored, aborted or concluded."""

    def __init__(self, session_id: str, status: str):
        super().__init__(
            f"Session {session_id} is {status} and cannot advance",
            code="SESSION_CLOSED",
            details={"session_id": session_id, "status": status},
        )


class SessionAbortedError(DialogueError):
    """Raised when a session is aborted while a stage is running."""

    def __init__(self, session_id: str, reason: Optional[str] = None):
        super().__init__(
            f"Session was aborted: {session_id}",
            code="SESSION_ABORTED",
            details={"session_id": session_id, "reason": reason},
        )


class StageExecutionError(DialogueError):
    """Raised when a stage fails irrecoverably; the session is marked errored."""

    def __init__(self, session_id: str, stage: str, original_error: str):
        super().__init__(
            f"Stage {stage} failed in session {session_id}: {original_error}",
            code="STAGE_EXECUTION_FAILED",
            details={
                "session_id": session_id,
                "stage": stage,
                "original_error": original_error,
            },
        )


class ReasonerUnavailableError(ExternalServiceError):
    """Raised when no Reasoner is configured for an agent."""

    def __init__(self, agent_id: str):
        super().__init__(
            f"No reasoner configured for agent: {agent_id}",
            service="reasoner",
            code="REASONER_UNAVAILABLE",
            details={"agent_id": agent_id},
        )
