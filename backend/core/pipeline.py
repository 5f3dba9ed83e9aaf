"""Stage pipeline controller.

Drives a session through the fixed stage sequence:

    individual-thought -> mutual-reflection -> [mutual-reflection-summary]
    -> conflict-resolution -> [conflict-resolution-summary]
    -> synthesis-attempt -> [synthesis-attempt-summary]
    -> output-generation -> finalize

Within a stage every agent runs concurrently. A stage is committed to the
session (transcript, stage history, stage pointer) only after all agents
have finished, so no agent ever sees partial output of the stage it is in.

Progress is reported through an optional ``emit`` callable receiving plain
dict events (``{"type": "stage_started", ...}``); inside the LangGraph
graph this is the stream writer.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

from modules.dialogue.exceptions import (
    InvalidStageTransitionError,
    ReasonerUnavailableError,
    SessionAbortedError,
    SessionClosedError,
    StageConflictError,
    StageExecutionError,
)
from providers.base import Reasoner
from shared.dialogue_config import DialogueSettings

from .agent import Agent, AgentOverrides, format_responses
from .conflicts import identify_conflicts
from .facilitator import Facilitator
from .interaction_log import InteractionLog
from .models import (
    STAGE_SEQUENCE,
    SUMMARIZED_STAGE,
    SUMMARY_STAGES,
    TERMINAL_STATUSES,
    ConsensusResult,
    DialogueStage,
    Message,
    MessageRole,
    Session,
    SessionStatus,
    StageRecord,
    StageResponse,
    StageSummary,
    stage_index,
)
from .prompts import format_summary_context
from .summarizer import StageSummarizer

logger = logging.getLogger(__name__)

EventSink = Callable[[dict[str, Any]], None]

CYCLE_DIGEST_CHARS = 1500


def _noop(event: dict[str, Any]) -> None:
    pass


class StagePipeline:
    """Runs dialogue stages for any number of independent sessions.

    Args:
        reasoners: Reasoner per agent id
        default_reasoner: Reasoner for agents without their own entry
        summarizer_reasoner: Reasoner for summary sub-stages (None = digest only)
        facilitator_reasoner: Reasoner for vote tie-breaks (None = tied set wins)
        settings: Dialogue settings (language, summaries, concurrency cap)
        interaction_log: Shared audit log
        overrides: Optional AgentOverrides per agent id
    """

    def __init__(
        self,
        reasoners: Optional[dict[str, Reasoner]] = None,
        default_reasoner: Optional[Reasoner] = None,
        summarizer_reasoner: Optional[Reasoner] = None,
        facilitator_reasoner: Optional[Reasoner] = None,
        settings: Optional[DialogueSettings] = None,
        interaction_log: Optional[InteractionLog] = None,
        overrides: Optional[dict[str, AgentOverrides]] = None,
    ):
        self.reasoners = reasoners or {}
        self.default_reasoner = default_reasoner
        self.settings = settings or DialogueSettings()
        self.interaction_log = interaction_log or InteractionLog(self.settings.log_dir)
        self.overrides = overrides or {}
        self.summarizer = StageSummarizer(
            summarizer_reasoner,
            self.interaction_log,
            self.settings.language,
        )
        self.facilitator = Facilitator(
            facilitator_reasoner,
            self.settings.language,
            interaction_log=self.interaction_log,
        )

        self._locks: dict[str, asyncio.Lock] = {}
        self._agents: dict[str, dict[str, Agent]] = {}

    # Session bookkeeping

    def is_running(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    def agents_for(self, session: Session) -> list[Agent]:
        """Agent instances bound to this session, in session order."""
        bound = self._agents.setdefault(session.id, {})
        agents = []
        for profile in session.agents:
            agent = bound.get(profile.id)
            if agent is None or agent.profile != profile:
                reasoner = self.reasoners.get(profile.id) or self.default_reasoner
                if reasoner is None:
                    raise ReasonerUnavailableError(profile.id)
                agent = Agent(
                    profile,
                    reasoner,
                    session.id,
                    interaction_log=self.interaction_log,
                    overrides=self.overrides.get(profile.id),
                    language=session.language,
                )
                bound[profile.id] = agent
            agent.sequence_number = session.sequence_number
            agents.append(agent)
        return agents

    def release(self, session_id: str) -> None:
        """Drop per-session state held by the pipeline."""
        self._agents.pop(session_id, None)
        self._locks.pop(session_id, None)

    def next_stage(self, session: Session) -> Optional[DialogueStage]:
        """The stage that should run next, or None when the cycle is done."""
        if session.current_stage is None:
            position = 0
        else:
            position = stage_index(session.current_stage) + 1
        while position < len(STAGE_SEQUENCE):
            stage = STAGE_SEQUENCE[position]
            if stage in SUMMARY_STAGES and not self.settings.summarize_stages:
                position += 1
                continue
            return stage
        return None

    def start_cycle(self, session: Session, query: str) -> Message:
        """Record the user query that opens the current cycle."""
        self._check_open(session)
        existing = session.user_query()
        if existing:
            if existing != query:
                logger.warning(
                    f"[{session.id}] Cycle {session.sequence_number} already has a query; "
                    f"keeping the original"
                )
            return next(
                m for m in session.messages
                if m.role == MessageRole.USER and m.sequence_number == session.sequence_number
            )
        message = Message(
            author="user",
            role=MessageRole.USER,
            content=query,
            sequence_number=session.sequence_number,
        )
        session.messages.append(message)
        if not session.title:
            session.title = query[:80]
        session.status = SessionStatus.ACTIVE
        session.touch()
        return message

    def reset(self, session: Session) -> Session:
        """Start a new cycle, keeping every earlier cycle in the history."""
        if self.is_running(session.id):
            raise StageConflictError(session.id)
        if session.status == SessionStatus.CONCLUDED:
            raise SessionClosedError(session.id, session.status.value)
        session.sequence_number += 1
        session.current_stage = None
        session.status = SessionStatus.ACTIVE
        session.error_message = None
        session.consensus = None
        session.touch()
        logger.info(f"[{session.id}] Reset to cycle {session.sequence_number}")
        return session

    def abort(self, session: Session, reason: Optional[str] = None) -> Session:
        """Mark the session aborted; honored at the next stage boundary."""
        if session.status in (SessionStatus.ABORTED, SessionStatus.CONCLUDED):
            return session
        session.status = SessionStatus.ABORTED
        session.error_message = reason
        session.touch()
        logger.info(f"[{session.id}] Aborted: {reason or 'no reason given'}")
        return session

    def conclude(self, session: Session) -> Session:
        """Close the session for good; no further cycles may start."""
        if self.is_running(session.id):
            raise StageConflictError(session.id)
        session.status = SessionStatus.CONCLUDED
        session.touch()
        return session

    # Execution

    async def run_cycle(
        self,
        session: Session,
        query: Optional[str] = None,
        emit: Optional[EventSink] = None,
    ) -> Session:
        """Run every remaining stage of the current cycle.

        Args:
            session: Session to advance (mutated in place)
            query: User query; required unless the cycle already has one
            emit: Optional event sink

        Returns:
            The session, completed or aborted

        Raises:
            StageExecutionError: If a stage failed; the session is errored
            StageConflictError: If the session is already advancing
        """
        emit = emit or _noop
        if query is not None:
            self.start_cycle(session, query)
        elif not session.user_query():
            raise ValueError("A query is required to start a new cycle")

        try:
            while (stage := self.next_stage(session)) is not None:
                await self.run_stage(session, stage, emit)
        except SessionAbortedError:
            emit({
                "type": "session_aborted",
                "session_id": session.id,
                "reason": session.error_message,
            })
            return session

        self.complete(session, emit)
        return session

    def complete(self, session: Session, emit: Optional[EventSink] = None) -> Session:
        """Mark a finished cycle completed and report it."""
        session.status = SessionStatus.COMPLETED
        session.touch()
        logger.info(f"[{session.id}] Cycle {session.sequence_number} completed")
        (emit or _noop)({
            "type": "session_completed",
            "session_id": session.id,
            "sequence_number": session.sequence_number,
            "winners": session.consensus.winners if session.consensus else [],
        })
        return session

    async def run_stage(
        self,
        session: Session,
        stage: DialogueStage,
        emit: Optional[EventSink] = None,
    ) -> list[StageResponse]:
        """Run one stage for every agent and commit it to the session.

        Args:
            session: Session to advance
            stage: Must equal ``next_stage(session)``
            emit: Optional event sink

        Returns:
            The committed responses (empty for summary sub-stages)

        Raises:
            StageConflictError: If another caller is advancing this session
            InvalidStageTransitionError: If the stage is out of order
            SessionClosedError: If the session is errored or concluded
            SessionAbortedError: If the session is (or becomes) aborted
            StageExecutionError: If the stage fails; the session is errored
        """
        emit = emit or _noop
        lock = self._locks.setdefault(session.id, asyncio.Lock())
        if lock.locked():
            raise StageConflictError(session.id)

        async with lock:
            self._check_open(session)
            expected = self.next_stage(session)
            if stage != expected:
                raise InvalidStageTransitionError(
                    session.id,
                    session.current_stage.value if session.current_stage else None,
                    stage.value,
                    expected.value if expected else None,
                )

            self.interaction_log.load(session.interactions)
            started_at = datetime.now(timezone.utc)
            logger.info(f"[{session.id}] Stage {stage.value} started")
            emit({
                "type": "stage_started",
                "session_id": session.id,
                "stage": stage.value,
                "sequence_number": session.sequence_number,
                "agents": session.agent_ids(),
            })

            consensus: Optional[ConsensusResult] = None
            digest: Optional[StageSummary] = None
            try:
                if stage in SUMMARY_STAGES:
                    summary = await self._run_summary(session, stage)
                    responses: list[StageResponse] = []
                elif stage == DialogueStage.FINALIZE:
                    summary = None
                    responses, consensus, digest = await self._run_finalize(session, emit)
                else:
                    summary = None
                    responses = await self._run_agents(session, stage, emit)
            except (SessionAbortedError, SessionClosedError):
                raise
            except Exception as e:
                self._fail(session, stage, e, emit)
                raise StageExecutionError(session.id, stage.value, str(e)) from e

            if session.status == SessionStatus.ABORTED:
                logger.info(f"[{session.id}] Discarding {stage.value} results of aborted session")
                self._sync_interactions(session)
                raise SessionAbortedError(session.id, session.error_message)

            self._commit(
                session,
                stage,
                started_at,
                responses,
                summary,
                consensus=consensus,
                digest=digest,
            )
            emit({
                "type": "stage_completed",
                "session_id": session.id,
                "stage": stage.value,
                "sequence_number": session.sequence_number,
                "response_count": len(responses),
                "summary": summary.content if summary else None,
            })
            logger.info(f"[{session.id}] Stage {stage.value} completed")
            return responses

    def _check_open(self, session: Session) -> None:
        if session.status == SessionStatus.ABORTED:
            raise SessionAbortedError(session.id, session.error_message)
        if session.status in TERMINAL_STATUSES:
            raise SessionClosedError(session.id, session.status.value)
        if session.status == SessionStatus.COMPLETED and self.next_stage(session) is None:
            raise SessionClosedError(session.id, session.status.value)

    def _fail(
        self,
        session: Session,
        stage: DialogueStage,
        error: Exception,
        emit: EventSink,
    ) -> None:
        logger.error(f"[{session.id}] Stage {stage.value} failed: {error}", exc_info=True)
        self._sync_interactions(session)
        session.status = SessionStatus.ERRORED
        session.error_message = str(error)
        session.touch()
        emit({
            "type": "session_errored",
            "session_id": session.id,
            "stage": stage.value,
            "error": str(error),
        })

    def _commit(
        self,
        session: Session,
        stage: DialogueStage,
        started_at: datetime,
        responses: Sequence[StageResponse],
        summary: Optional[StageSummary],
        consensus: Optional[ConsensusResult] = None,
        digest: Optional[StageSummary] = None,
    ) -> None:
        """Append a completed stage to the session."""
        if consensus is not None:
            session.consensus = consensus
        if digest is not None:
            session.summaries.append(digest)
        for response in responses:
            session.messages.append(Message(
                author=response.agent_id,
                role=MessageRole.AGENT,
                content=response.content,
                stage=stage,
                sequence_number=session.sequence_number,
                timestamp=response.created_at,
                metadata={"confidence": response.confidence, "success": response.success},
            ))
        if summary is not None:
            session.summaries.append(summary)
            session.messages.append(Message(
                author="system",
                role=MessageRole.SYSTEM,
                content=summary.content,
                stage=stage,
                sequence_number=session.sequence_number,
            ))
        session.stage_history.append(StageRecord(
            stage=stage,
            sequence_number=session.sequence_number,
            started_at=started_at,
            responses=list(responses),
        ))
        session.current_stage = stage
        self._sync_interactions(session)
        session.touch()

    def _sync_interactions(self, session: Session) -> None:
        known = {r.id for r in session.interactions}
        session.interactions.extend(
            r for r in self.interaction_log.for_session(session.id) if r.id not in known
        )

    async def _gather(
        self,
        session: Session,
        stage: DialogueStage,
        agents: Sequence[Agent],
        make_call: Callable[[Agent], Any],
        emit: EventSink,
    ) -> list[StageResponse]:
        """Run one call per agent concurrently, reporting each completion."""
        limit = self.settings.max_concurrency
        semaphore = asyncio.Semaphore(limit) if limit else None

        async def run_one(agent: Agent) -> StageResponse:
            if semaphore is None:
                response = await make_call(agent)
            else:
                async with semaphore:
                    response = await make_call(agent)
            emit({
                "type": "agent_completed",
                "session_id": session.id,
                "stage": stage.value,
                "agent_id": agent.id,
                "response": response.model_dump(mode="json"),
            })
            return response

        return list(await asyncio.gather(*(run_one(a) for a in agents)))

    # Stage inputs

    def _names(self, session: Session) -> dict[str, str]:
        return {a.id: a.name for a in session.agents}

    def _stage_summary(self, session: Session, stage: DialogueStage) -> Optional[StageSummary]:
        for summary in session.summaries_for():
            if summary.stage == stage:
                return summary
        return None

    def _stage_input(self, session: Session, stage: DialogueStage) -> str:
        """A stage's output as input text: its summary if one exists."""
        summary = self._stage_summary(session, stage)
        if summary is not None:
            return summary.content
        return format_responses(session.responses_for(stage), self._names(session))

    def _summary_context(
        self,
        session: Session,
        exclude: Optional[DialogueStage] = None,
    ) -> str:
        texts = []
        if session.sequence_number > 1:
            for summary in session.summaries_for(session.sequence_number - 1):
                if summary.stage == DialogueStage.FINALIZE:
                    texts.append(f"Previous cycle conclusion:\n{summary.content}")
        for summary in session.summaries_for():
            if summary.stage != exclude and summary.stage != DialogueStage.FINALIZE:
                texts.append(summary.content)
        return format_summary_context(texts, session.language)

    # Stage runners

    async def _run_agents(
        self,
        session: Session,
        stage: DialogueStage,
        emit: EventSink,
    ) -> list[StageResponse]:
        agents = self.agents_for(session)
        query = session.user_query()
        history = list(session.messages)
        names = self._names(session)
        peers = [a.peer_ref() for a in agents]

        if stage == DialogueStage.INDIVIDUAL_THOUGHT:
            summary_context = self._summary_context(session)

            def call(agent: Agent):
                return agent.individual_thought(query, history, summary_context, names)

        elif stage == DialogueStage.MUTUAL_REFLECTION:
            thoughts = session.responses_for(DialogueStage.INDIVIDUAL_THOUGHT)
            summary_context = self._summary_context(session)

            def call(agent: Agent):
                return agent.mutual_reflection(
                    query, thoughts, peers, history, summary_context, names
                )

        elif stage == DialogueStage.CONFLICT_RESOLUTION:
            conflicts = identify_conflicts(
                session.responses_for(DialogueStage.INDIVIDUAL_THOUGHT),
                session.responses_for(DialogueStage.MUTUAL_REFLECTION),
                session.agents,
            )
            summary_context = self._summary_context(session)

            def call(agent: Agent):
                return agent.conflict_resolution(
                    query, conflicts, history, summary_context, names
                )

        elif stage == DialogueStage.SYNTHESIS_ATTEMPT:
            synthesis_data = self._stage_input(session, DialogueStage.CONFLICT_RESOLUTION)
            summary_context = self._summary_context(session, exclude=DialogueStage.CONFLICT_RESOLUTION)

            def call(agent: Agent):
                return agent.synthesis_attempt(
                    query, synthesis_data, history, summary_context, names
                )

        elif stage == DialogueStage.OUTPUT_GENERATION:
            final_data = self._stage_input(session, DialogueStage.SYNTHESIS_ATTEMPT)
            summary_context = self._summary_context(session, exclude=DialogueStage.SYNTHESIS_ATTEMPT)

            def call(agent: Agent):
                return agent.output_generation(
                    query, final_data, peers, history, summary_context, names
                )

        else:
            raise ValueError(f"Not an agent stage: {stage.value}")

        return await self._gather(session, stage, agents, call, emit)

    async def _run_summary(self, session: Session, stage: DialogueStage) -> StageSummary:
        summarized = SUMMARIZED_STAGE[stage]
        return await self.summarizer.summarize(
            session.id,
            stage,
            session.responses_for(summarized),
            session.agents,
            session.sequence_number,
            language=session.language,
        )

    async def _run_finalize(
        self,
        session: Session,
        emit: EventSink,
    ) -> tuple[list[StageResponse], ConsensusResult, StageSummary]:
        """Resolve the votes and let the winners finalize.

        Nothing is written to the session here; the consensus and the cycle
        digest are applied on commit so an abort leaves no trace of them.
        """
        agents = self.agents_for(session)
        outputs = session.responses_for(DialogueStage.OUTPUT_GENERATION)
        votes = [r.vote for r in outputs if r.vote is not None]
        peers = [a.peer_ref() for a in agents]

        consensus = await self.facilitator.resolve(
            votes,
            peers,
            session_id=session.id,
            sequence_number=session.sequence_number,
            language=session.language,
        )
        emit({
            "type": "consensus_resolved",
            "session_id": session.id,
            "consensus": consensus.model_dump(mode="json"),
        })

        winners = [a for a in agents if a.id in consensus.winners]
        query = session.user_query()
        history = list(session.messages)
        names = self._names(session)
        final_data = format_responses(outputs, names)
        summary_context = self._summary_context(session)

        def call(agent: Agent):
            return agent.finalize(query, final_data, consensus, history, summary_context, names)

        responses = await self._gather(session, DialogueStage.FINALIZE, winners, call, emit)

        digest = "\n\n".join(
            f"{names.get(r.agent_id, r.agent_id)}: {r.content.strip()[:CYCLE_DIGEST_CHARS]}"
            for r in responses
        )
        return responses, consensus, StageSummary(
            stage=DialogueStage.FINALIZE,
            content=digest,
            sequence_number=session.sequence_number,
        )
