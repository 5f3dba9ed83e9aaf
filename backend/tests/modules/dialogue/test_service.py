"""Tests for the dialogue service."""

import asyncio
import os
from typing import Optional

import pytest
import yaml
from unittest.mock import AsyncMock, patch

from core.models import (
    STAGE_SEQUENCE,
    DialogueStage,
    GenerationParameters,
    Language,
    SessionStatus,
)
from core.pipeline import StagePipeline
from modules.dialogue.exceptions import (
    SessionClosedError,
    SessionNotFoundError,
    StageConflictError,
)
from modules.dialogue.models import CreateSessionRequest, DialogueEventType
from modules.dialogue.repository import InMemorySessionRepository
from modules.dialogue.service import (
    DialogueService,
    get_dialogue_service,
    reset_dialogue_service,
)
from providers.base import Reasoner, ReasonerResult


class CountingRepository(InMemorySessionRepository):
    """In-memory repository that records which statuses were saved."""

    def __init__(self):
        super().__init__()
        self.saved: list[tuple[SessionStatus, DialogueStage | None]] = []

    async def save(self, session):
        self.saved.append((session.status, session.current_stage))
        await super().save(session)


class GatedReasoner(Reasoner):
    """Reasoner that holds every call until released."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def execute(
        self,
        instruction: str,
        *,
        system_prompt: Optional[str] = None,
        parameters: Optional[GenerationParameters] = None,
    ) -> ReasonerResult:
        self.started.set()
        await self.release.wait()
        return ReasonerResult(content="Released.")


@pytest.fixture
def repository():
    return CountingRepository()


@pytest.fixture
def service(pipeline, repository):
    return DialogueService(pipeline, repository)


async def _create(service, profiles, **fields):
    return await service.create_session(CreateSessionRequest(agents=profiles, **fields))


class TestCreateSession:
    @pytest.mark.asyncio
    async def test_creates_and_stores(self, service, repository, profiles):
        session = await _create(service, profiles, title="Names")

        assert session.status == SessionStatus.ACTIVE
        assert session.current_stage is None
        assert session.agent_ids() == ["logician", "critic", "poet"]
        assert await repository.get(session.id) == session

    @pytest.mark.asyncio
    async def test_language_defaults_to_settings(self, service, profiles):
        session = await _create(service, profiles)
        assert session.language == Language.EN

    @pytest.mark.asyncio
    async def test_language_override(self, service, profiles):
        session = await _create(service, profiles, language=Language.JA)
        assert session.language == Language.JA


class TestGetSession:
    @pytest.mark.asyncio
    async def test_not_found(self, service):
        with pytest.raises(SessionNotFoundError):
            await service.get_session("missing")

    @pytest.mark.asyncio
    async def test_list_sessions(self, service, profiles):
        first = await _create(service, profiles, title="first")
        await _create(service, profiles, title="second")

        items = await service.list_sessions()

        assert {item.title for item in items} == {"first", "second"}
        item = next(i for i in items if i.id == first.id)
        assert item.agent_count == 3
        assert item.status == SessionStatus.ACTIVE


class TestRunSessionStream:
    @pytest.mark.asyncio
    async def test_full_cycle_events(self, service, profiles):
        session = await _create(service, profiles)

        events = [e async for e in service.run_session_stream(session.id, "What makes a good name?")]

        types = [e.type for e in events]
        assert types[0] == DialogueEventType.SESSION_STARTED
        assert events[0].progress["query"] == "What makes a good name?"
        assert types.count(DialogueEventType.STAGE_STARTED) == len(STAGE_SEQUENCE)
        assert types.count(DialogueEventType.STAGE_COMPLETED) == len(STAGE_SEQUENCE)
        assert DialogueEventType.CONSENSUS_RESOLVED in types
        assert types[-1] == DialogueEventType.SESSION_COMPLETED
        assert all(e.session_id == session.id for e in events)

    @pytest.mark.asyncio
    async def test_checkpoints_after_each_stage(self, service, repository, profiles):
        session = await _create(service, profiles)
        repository.saved.clear()

        await service.run_cycle(session.id, "Q")

        assert len(repository.saved) == len(STAGE_SEQUENCE) + 1
        assert repository.saved[-1] == (SessionStatus.COMPLETED, DialogueStage.FINALIZE)

    @pytest.mark.asyncio
    async def test_run_cycle_persists_result(self, service, repository, profiles):
        session = await _create(service, profiles)

        result = await service.run_cycle(session.id, "Q")

        stored = await repository.get(session.id)
        assert result.status == SessionStatus.COMPLETED
        assert stored.consensus is not None
        assert stored.consensus.winners
        assert len(stored.stage_history) == len(STAGE_SEQUENCE)
        assert stored.interactions

    @pytest.mark.asyncio
    async def test_query_required(self, service, profiles):
        session = await _create(service, profiles)

        with pytest.raises(ValueError, match="query is required"):
            async for _ in service.run_session_stream(session.id):
                pass

    @pytest.mark.asyncio
    async def test_stage_failure_reports_error_once(self, service, pipeline, repository, profiles):
        pipeline.summarizer.summarize = AsyncMock(side_effect=RuntimeError("disk full"))
        session = await _create(service, profiles)

        events = [e async for e in service.run_session_stream(session.id, "Q")]

        errored = [e for e in events if e.type == DialogueEventType.SESSION_ERRORED]
        assert len(errored) == 1
        assert "disk full" in errored[0].error
        stored = await repository.get(session.id)
        assert stored.status == SessionStatus.ERRORED
        assert stored.current_stage == DialogueStage.MUTUAL_REFLECTION

    @pytest.mark.asyncio
    async def test_aborted_session_does_not_advance(self, service, repository, profiles):
        session = await _create(service, profiles)
        service.pipeline.start_cycle(session, "Q")
        await repository.save(session)
        await service.abort_session(session.id, "stop")

        events = [e async for e in service.run_session_stream(session.id)]

        assert [e.type for e in events] == [DialogueEventType.SESSION_STARTED]
        stored = await service.get_session(session.id)
        assert stored.status == SessionStatus.ABORTED
        assert stored.stage_history == []

    @pytest.mark.asyncio
    async def test_not_running_after_stream(self, service, profiles):
        session = await _create(service, profiles)

        await service.run_cycle(session.id, "Q")

        assert session.id not in service._running
        assert not service.pipeline.is_running(session.id)

class TestConcurrentRuns:
    """A session can only be run by one caller at a time."""

    @pytest.mark.asyncio
    async def test_second_run_rejected_without_touching_live_session(
        self, repository, profiles
    ):
        reasoner = GatedReasoner()
        service = DialogueService(StagePipeline(default_reasoner=reasoner), repository)
        session = await _create(service, profiles)

        first = asyncio.create_task(service.run_cycle(session.id, "Q"))
        await asyncio.wait_for(reasoner.started.wait(), timeout=1)

        with pytest.raises(StageConflictError):
            async for _ in service.run_session_stream(session.id):
                pass

        live = await service.get_session(session.id)
        assert live.status == SessionStatus.ACTIVE
        assert session.id in service._running
        assert SessionStatus.ERRORED not in [status for status, _ in repository.saved]

        reasoner.release.set()
        finished = await asyncio.wait_for(first, timeout=5)

        assert finished.status == SessionStatus.COMPLETED
        assert finished.current_stage == DialogueStage.FINALIZE
        assert session.id not in service._running

    @pytest.mark.asyncio
    async def test_tracked_session_rejected_between_stages(self, service, profiles):
        session = await _create(service, profiles)
        service._running[session.id] = session

        with pytest.raises(StageConflictError):
            async for _ in service.run_session_stream(session.id, "Q"):
                pass

        assert service._running[session.id] is session
        assert session.user_query() == ""


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_reset_starts_next_cycle(self, service, repository, profiles):
        session = await _create(service, profiles)
        await service.run_cycle(session.id, "Q")

        reset = await service.reset_session(session.id)

        assert reset.sequence_number == 2
        assert reset.current_stage is None
        assert (await repository.get(session.id)).sequence_number == 2

    @pytest.mark.asyncio
    async def test_second_cycle_keeps_history(self, service, profiles):
        session = await _create(service, profiles)
        await service.run_cycle(session.id, "First")
        await service.reset_session(session.id)

        result = await service.run_cycle(session.id, "Second")

        assert result.sequence_number == 2
        assert result.user_query(1) == "First"
        assert result.user_query() == "Second"
        assert len(result.stage_history) == 2 * len(STAGE_SEQUENCE)

    @pytest.mark.asyncio
    async def test_abort_idle_session_is_saved(self, service, repository, profiles):
        session = await _create(service, profiles)

        await service.abort_session(session.id, "user request")

        stored = await repository.get(session.id)
        assert stored.status == SessionStatus.ABORTED
        assert stored.error_message == "user request"

    @pytest.mark.asyncio
    async def test_concluded_session_rejects_new_cycle(self, service, profiles):
        session = await _create(service, profiles)
        await service.conclude_session(session.id)

        with pytest.raises(SessionClosedError):
            async for _ in service.run_session_stream(session.id, "Q"):
                pass

    @pytest.mark.asyncio
    async def test_delete(self, service, profiles):
        session = await _create(service, profiles)

        assert await service.delete_session(session.id) is True
        with pytest.raises(SessionNotFoundError):
            await service.get_session(session.id)

    @pytest.mark.asyncio
    async def test_delete_missing(self, service):
        with pytest.raises(SessionNotFoundError):
            await service.delete_session("missing")


class TestGetDialogueService:
    def test_singleton_from_config(self, tmp_path):
        config_path = tmp_path / "config.yaml"
        config_path.write_text(yaml.safe_dump({
            "dialogue_settings": {"language": "ja"},
            "model_list": [{
                "model_name": "local",
                "litellm_params": {"provider": "ollama", "model": "qwen3:8b"},
            }],
            "agents": [
                {"id": "a", "name": "A", "style": "logical", "priority": "depth", "model_name": "local"},
                {"id": "b", "name": "B", "style": "critical", "priority": "precision", "model_name": "local"},
            ],
        }), encoding="utf-8")

        with patch.dict(os.environ, {
            "POLYPHONY_CONFIG": str(config_path),
            "SESSION_STORE": "memory",
            "INTERACTION_LOG_DIR": str(tmp_path / "logs"),
        }):
            service = get_dialogue_service()
            assert get_dialogue_service() is service

        assert isinstance(service._repository, InMemorySessionRepository)
        assert service.pipeline.settings.language == Language.JA
        assert set(service.pipeline.reasoners) == {"a", "b"}

        reset_dialogue_service()
        with patch.dict(os.environ, {"POLYPHONY_CONFIG": str(config_path)}):
            assert get_dialogue_service() is not service
