"""
Dialogue service.

Owns session lifecycle around the engine: creates sessions, runs cycles
through the LangGraph dialogue graph, checkpoints them through an
ISessionRepository and maps pipeline events to DialogueEvents.
"""

import logging
import os
from typing import AsyncIterator, Optional

from core.graph import DialogueState, build_graph
from core.models import Session, SessionStatus
from core.pipeline import StagePipeline
from shared.dialogue_config import DialogueSettings

from .event_mapper import EventMapper
from .exceptions import SessionNotFoundError, StageConflictError
from .interfaces import IDialogueService, ISessionRepository
from .models import (
    CreateSessionRequest,
    DialogueEvent,
    DialogueEventType,
    SessionListItem,
)
from .repository import InMemorySessionRepository

logger = logging.getLogger(__name__)

# Events after which the session is checkpointed
CHECKPOINT_EVENTS = frozenset({
    DialogueEventType.STAGE_COMPLETED,
    DialogueEventType.SESSION_COMPLETED,
    DialogueEventType.SESSION_ERRORED,
    DialogueEventType.SESSION_ABORTED,
})


class DialogueService(IDialogueService):
    """
    Dialogue service backed by a StagePipeline and a session repository.

    Sessions currently being advanced are held in ``_running`` so that
    abort_session reaches the live object the pipeline is mutating.
    """

    def __init__(
        self,
        pipeline: StagePipeline,
        repository: Optional[ISessionRepository] = None,
        settings: Optional[DialogueSettings] = None,
    ):
        self._pipeline = pipeline
        self._repository = repository or InMemorySessionRepository()
        self._settings = settings or pipeline.settings
        self._graph = None
        self._running: dict[str, Session] = {}

    @property
    def pipeline(self) -> StagePipeline:
        return self._pipeline

    def _get_graph(self):
        if self._graph is None:
            self._graph = build_graph()
        return self._graph

    async def create_session(self, request: CreateSessionRequest) -> Session:
        """Create and store a new session."""
        session = Session(
            title=request.title,
            language=request.language or self._settings.language,
            agents=list(request.agents),
        )
        await self._repository.save(session)
        logger.info(f"[{session.id}] Created with agents {session.agent_ids()}")
        return session

    async def get_session(self, session_id: str) -> Session:
        """Get a session, preferring the live copy of a running one."""
        if session_id in self._running:
            return self._running[session_id]
        session = await self._repository.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def list_sessions(self) -> list[SessionListItem]:
        """List stored sessions, most recent first."""
        items = []
        for session_id in await self._repository.list_ids():
            session = self._running.get(session_id) or await self._repository.get(session_id)
            if session is None:
                continue
            items.append(SessionListItem(
                id=session.id,
                title=session.title,
                status=session.status,
                current_stage=session.current_stage,
                sequence_number=session.sequence_number,
                agent_count=len(session.agents),
                updated_at=session.updated_at,
            ))
        return items

    async def run_session_stream(
        self,
        session_id: str,
        query: Optional[str] = None,
    ) -> AsyncIterator[DialogueEvent]:
        """Run the rest of the current cycle and stream events.

        Raises:
            StageConflictError: If the session is already being run
        """
        if session_id in self._running or self._pipeline.is_running(session_id):
            raise StageConflictError(session_id)

        session = await self.get_session(session_id)
        if query is not None:
            self._pipeline.start_cycle(session, query)
        elif not session.user_query():
            raise ValueError("A query is required to start a new cycle")

        mapper = EventMapper(session.id, session.sequence_number)
        self._running[session.id] = session
        errored_reported = False
        try:
            yield DialogueEvent(
                type=DialogueEventType.SESSION_STARTED,
                session_id=session.id,
                sequence_number=session.sequence_number,
                progress={
                    "query": session.user_query(),
                    "agents": session.agent_ids(),
                },
            )

            state: DialogueState = {
                "pipeline": self._pipeline,
                "session": session,
                "completed_stages": [],
                "aborted": False,
            }
            async for chunk in self._get_graph().astream(state, stream_mode="custom"):
                async for event in mapper.map_event("custom", chunk):
                    if event.type == DialogueEventType.SESSION_ERRORED:
                        errored_reported = True
                    if event.type in CHECKPOINT_EVENTS:
                        await self._repository.save(session)
                    yield event

        except StageConflictError:
            raise
        except Exception as e:
            logger.error(f"[{session.id}] Session run failed: {e}")
            if session.status != SessionStatus.ERRORED:
                session.status = SessionStatus.ERRORED
                session.error_message = str(e)
                session.touch()
            await self._repository.save(session)
            if not errored_reported:
                yield DialogueEvent(
                    type=DialogueEventType.SESSION_ERRORED,
                    session_id=session.id,
                    sequence_number=session.sequence_number,
                    error=str(e),
                )
        finally:
            if self._running.get(session.id) is session:
                del self._running[session.id]

    async def run_cycle(self, session_id: str, query: Optional[str] = None) -> Session:
        """Run a cycle to the end without consuming events individually."""
        async for _ in self.run_session_stream(session_id, query):
            pass
        return await self.get_session(session_id)

    async def reset_session(self, session_id: str) -> Session:
        """Start a new cycle on the session."""
        session = await self.get_session(session_id)
        self._pipeline.reset(session)
        await self._repository.save(session)
        return session

    async def abort_session(self, session_id: str, reason: Optional[str] = None) -> Session:
        """Abort a session; a running stage is discarded at its boundary."""
        session = await self.get_session(session_id)
        self._pipeline.abort(session, reason)
        if session_id not in self._running:
            await self._repository.save(session)
        return session

    async def conclude_session(self, session_id: str) -> Session:
        """Close a session so no further cycles can start."""
        session = await self.get_session(session_id)
        self._pipeline.conclude(session)
        await self._repository.save(session)
        return session

    async def delete_session(self, session_id: str) -> bool:
        """Delete a session and its history."""
        if session_id in self._running:
            self._pipeline.abort(self._running[session_id], "deleted")
        deleted = await self._repository.delete(session_id)
        if not deleted:
            raise SessionNotFoundError(session_id)
        self._pipeline.release(session_id)
        self._pipeline.interaction_log.clear(session_id)
        return True


# Module-level instance getter
_service_instance: Optional[DialogueService] = None


def get_dialogue_service() -> DialogueService:
    """
    Get the dialogue service singleton.

    Built from the environment Settings and the YAML run configuration
    named by POLYPHONY_CONFIG (default config.yaml).
    """
    global _service_instance
    if _service_instance is None:
        from core.config import build_pipeline, load_config
        from shared.config import get_settings

        from .repository import create_session_repository

        settings = get_settings()
        config = load_config(os.environ.get("POLYPHONY_CONFIG", "config.yaml"))
        _service_instance = DialogueService(
            pipeline=build_pipeline(config, settings),
            repository=create_session_repository(settings.session_store, settings.session_dir),
            settings=config.dialogue_settings,
        )
    return _service_instance


def reset_dialogue_service() -> None:
    """Reset the dialogue service singleton (for testing)."""
    global _service_instance
    _service_instance = None
