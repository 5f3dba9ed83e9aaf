"""
Session repositories.

Three interchangeable ISessionRepository adapters:
- InMemorySessionRepository: process-local dict (CLI runs, tests)
- FileSessionRepository: one JSON document per session
- SupabaseSessionRepository: one row per session in dialogue_sessions,
  with the full Session stored in a JSON snapshot column
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError
from supabase import Client

from core.models import Session
from shared.repository import BaseRepository

logger = logging.getLogger(__name__)

SESSIONS_TABLE = "dialogue_sessions"


class InMemorySessionRepository:
    """Keeps copies of sessions in a dict keyed by id."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    async def save(self, session: Session) -> None:
        self._sessions[session.id] = session.model_copy(deep=True)

    async def get(self, session_id: str) -> Optional[Session]:
        session = self._sessions.get(session_id)
        return session.model_copy(deep=True) if session else None

    async def delete(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    async def list_ids(self) -> list[str]:
        ordered = sorted(self._sessions.values(), key=lambda s: s.updated_at, reverse=True)
        return [s.id for s in ordered]


class FileSessionRepository:
    """
    Stores each session as ``<session_dir>/<session_id>.json``.

    Writes go to a temporary file that is then renamed over the target,
    so a reader never sees a half-written snapshot.
    """

    def __init__(self, session_dir: Path) -> None:
        self.session_dir = Path(session_dir)
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        # Ids are uuid4 strings; reject anything that could escape the directory
        if not session_id or "/" in session_id or "\\" in session_id or session_id.startswith("."):
            raise ValueError(f"Invalid session id: {session_id!r}")
        return self.session_dir / f"{session_id}.json"

    async def save(self, session: Session) -> None:
        path = self._path(session.id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(session.model_dump_json(indent=2), encoding="utf-8")
        tmp.replace(path)

    async def get(self, session_id: str) -> Optional[Session]:
        path = self._path(session_id)
        if not path.exists():
            return None
        try:
            return Session.model_validate_json(path.read_text(encoding="utf-8"))
        except PydanticValidationError as e:
            logger.error(f"Corrupt session snapshot {path}: {e}")
            return None

    async def delete(self, session_id: str) -> bool:
        path = self._path(session_id)
        if not path.exists():
            return False
        path.unlink()
        return True

    async def list_ids(self) -> list[str]:
        files = sorted(
            self.session_dir.glob("*.json"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        return [p.stem for p in files]


class SupabaseSessionRepository(BaseRepository[Session]):
    """
    Repository for session snapshots in Supabase.

    Table layout: id (text, primary key), title, status, sequence_number,
    snapshot (jsonb), created_at, updated_at.
    """

    async def save(self, session: Session) -> None:
        data: dict[str, Any] = {
            "id": session.id,
            "title": session.title,
            "status": session.status.value,
            "sequence_number": session.sequence_number,
            "snapshot": session.model_dump(mode="json"),
            "created_at": session.created_at.isoformat(),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self._db.table(SESSIONS_TABLE).upsert(data).execute()

    async def get(self, session_id: str) -> Optional[Session]:
        row = self._first(
            self._db.table(SESSIONS_TABLE).select("snapshot").eq("id", session_id).execute()
        )
        if row is None:
            return None
        return self._map_to_session(row)

    async def delete(self, session_id: str) -> bool:
        result = self._db.table(SESSIONS_TABLE).delete().eq("id", session_id).execute()
        return bool(result.data)

    async def list_ids(self) -> list[str]:
        result = self._db.table(SESSIONS_TABLE).select("id").order(
            "updated_at", desc=True
        ).execute()
        return [str(row["id"]) for row in result.data]

    def _map_to_session(self, data: dict) -> Session:
        """Map database row to Session model."""
        return Session.model_validate(data["snapshot"])


def create_session_repository(
    store: str,
    session_dir: Optional[Path] = None,
    client: Optional[Client] = None,
):
    """
    Build the repository named by ``Settings.session_store``.

    Args:
        store: "memory", "file" or "supabase"
        session_dir: Directory for the file store
        client: Supabase client for the supabase store (created if omitted)
    """
    if store == "memory":
        return InMemorySessionRepository()
    if store == "file":
        return FileSessionRepository(session_dir or Path("sessions"))
    if store == "supabase":
        if client is None:
            from shared.database import get_supabase_client
            client = get_supabase_client()
        return SupabaseSessionRepository(client)
    raise ValueError(f"Unknown session store: {store}")
