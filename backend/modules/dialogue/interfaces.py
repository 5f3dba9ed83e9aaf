"""
Dialogue module interfaces.

Callers (the CLI, an API layer) depend on IDialogueService; the service
depends on ISessionRepository for persistence.
"""

from typing import AsyncIterator, Optional, Protocol, runtime_checkable

from core.models import Session

from .models import CreateSessionRequest, DialogueEvent, SessionListItem


@runtime_checkable
class ISessionRepository(Protocol):
    """
    Storage for session snapshots.

    A snapshot is the complete Session: transcript, stage history,
    summaries, interaction records and consensus.
    """

    async def save(self, session: Session) -> None:
        """Insert or replace a session snapshot."""
        ...

    async def get(self, session_id: str) -> Optional[Session]:
        """Load a session, or None if it does not exist."""
        ...

    async def delete(self, session_id: str) -> bool:
        """Delete a session. Returns False if it did not exist."""
        ...

    async def list_ids(self) -> list[str]:
        """Ids of every stored session, most recently updated first."""
        ...


@runtime_checkable
class IDialogueService(Protocol):
    """
    Interface for dialogue session operations.
    """

    async def create_session(self, request: CreateSessionRequest) -> Session:
        """
        Create a new session in ACTIVE status with no stages run.

        Args:
            request: Agents, title and language

        Returns:
            The stored session
        """
        ...

    async def get_session(self, session_id: str) -> Session:
        """
        Get a session by ID.

        Raises:
            SessionNotFoundError: If the session doesn't exist
        """
        ...

    async def list_sessions(self) -> list[SessionListItem]:
        """List stored sessions, most recent first."""
        ...

    def run_session_stream(
        self,
        session_id: str,
        query: Optional[str] = None,
    ) -> AsyncIterator[DialogueEvent]:
        """
        Run the remaining stages of the current cycle and stream events.

        The session is saved after every completed stage, so a crash
        leaves the last committed stage on disk.

        Args:
            session_id: Session to advance
            query: User query opening the cycle (omit to resume)

        Yields:
            DialogueEvent objects for each update

        Raises:
            SessionNotFoundError: If the session doesn't exist
        """
        ...

    async def reset_session(self, session_id: str) -> Session:
        """
        Start a new cycle on a session, keeping its history.

        Raises:
            SessionNotFoundError: If the session doesn't exist
            StageConflictError: If the session is currently advancing
        """
        ...

    async def abort_session(self, session_id: str, reason: Optional[str] = None) -> Session:
        """
        Abort a session; a running stage finishes but is not recorded.

        Raises:
            SessionNotFoundError: If the session doesn't exist
        """
        ...

    async def delete_session(self, session_id: str) -> bool:
        """
        Delete a session and its history.

        Raises:
            SessionNotFoundError: If the session doesn't exist
        """
        ...
