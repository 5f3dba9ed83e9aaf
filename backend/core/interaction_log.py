"""Audit log of Reasoner invocations.

Every agent call, successful or not, is recorded with its prompt, output,
duration and status. Records are kept in memory per session and can
optionally be written as JSON under ``<log_dir>/<session>/<stage>/<agent>.json``.
"""

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Iterable, Optional

from .models import DialogueStage, InteractionRecord, InteractionStatus

logger = logging.getLogger(__name__)


class InteractionLog:
    """In-memory interaction store with optional JSON file output."""

    def __init__(self, log_dir: Optional[Path] = None):
        self.log_dir = log_dir
        self._records: dict[str, list[InteractionRecord]] = defaultdict(list)

    def record(self, record: InteractionRecord) -> InteractionRecord:
        self._records[record.session_id].append(record)
        logger.debug(
            f"[{record.session_id}] {record.agent_id} {record.stage.value if record.stage else '-'}: "
            f"{record.status.value} in {record.duration_ms:.0f}ms"
        )
        if self.log_dir is not None:
            self._write(record)
        return record

    def load(self, records: Iterable[InteractionRecord]) -> None:
        """Seed the log with records restored from a session snapshot."""
        for record in records:
            known = {r.id for r in self._records[record.session_id]}
            if record.id not in known:
                self._records[record.session_id].append(record)

    def for_session(self, session_id: str) -> list[InteractionRecord]:
        return list(self._records.get(session_id, []))

    def for_agent(self, session_id: str, agent_id: str) -> list[InteractionRecord]:
        return [r for r in self._records.get(session_id, []) if r.agent_id == agent_id]

    def success_counts(
        self,
        session_id: str,
        agent_id: Optional[str] = None,
    ) -> tuple[int, int]:
        """Return (successful, total) invocations, optionally for one agent."""
        records = (
            self.for_agent(session_id, agent_id)
            if agent_id
            else self.for_session(session_id)
        )
        success = sum(1 for r in records if r.status == InteractionStatus.SUCCESS)
        return success, len(records)

    def clear(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    def _write(self, record: InteractionRecord) -> None:
        """Append the record to its per-agent JSON file.

        Write failures are logged and ignored; the in-memory record stays.
        """
        stage = record.stage.value if isinstance(record.stage, DialogueStage) else "unknown"
        path = self.log_dir / record.session_id / stage / f"{record.agent_id}.json"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            existing = json.loads(path.read_text()) if path.exists() else []
            existing.append(record.model_dump(mode="json"))
            path.write_text(json.dumps(existing, ensure_ascii=False, indent=2))
        except (OSError, ValueError) as e:
            logger.warning(f"Could not write interaction log {path}: {e}")
