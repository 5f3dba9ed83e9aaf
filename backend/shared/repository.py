"""
Base repository class for database access.

Wraps the Supabase client so module repositories only deal with their
own tables and row mapping.
"""

from typing import Any, Generic, Optional, TypeVar
from supabase import Client


T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Base class for Supabase-backed repositories.

    Subclasses implement the storage methods for their model type and map
    rows to Pydantic models internally, e.g.:

        class SessionRepository(BaseRepository[Session]):
            async def get(self, session_id: str) -> Optional[Session]:
                row = self._first(
                    self._db.table("dialogue_sessions").select("*").eq("id", session_id).execute()
                )
                return Session.model_validate(row["snapshot"]) if row else None
    """

    def __init__(self, db: Client) -> None:
        """
        Initialize the repository with a Supabase client.

        Args:
            db: Supabase client instance for database operations.
        """
        self._db = db

    @staticmethod
    def _first(result: Any) -> Optional[dict[str, Any]]:
        """First row of a query result, or None when it returned nothing."""
        if not result.data:
            return None
        return result.data[0]
