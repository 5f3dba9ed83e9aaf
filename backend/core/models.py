"""Pydantic models for the dialogue core module.

These models define the structured data passed between the stage pipeline,
the agents and the facilitator.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ReasoningStyle(str, Enum):
    """How an agent tends to reason."""

    LOGICAL = "logical"
    CRITICAL = "critical"
    INTUITIVE = "intuitive"
    META = "meta"
    EMOTIVE = "emotive"
    ANALYTICAL = "analytical"


class Priority(str, Enum):
    """What an agent optimizes for when answering."""

    PRECISION = "precision"
    BREADTH = "breadth"
    DEPTH = "depth"
    BALANCE = "balance"


class MemoryScope(str, Enum):
    """How much of the transcript an agent is allowed to see."""

    LOCAL = "local"
    SESSION = "session"
    CROSS_SESSION = "cross-session"


class Language(str, Enum):
    """Supported output languages."""

    EN = "en"
    JA = "ja"


class DialogueStage(str, Enum):
    """Stages of one dialogue cycle, in execution order."""

    INDIVIDUAL_THOUGHT = "individual-thought"
    MUTUAL_REFLECTION = "mutual-reflection"
    MUTUAL_REFLECTION_SUMMARY = "mutual-reflection-summary"
    CONFLICT_RESOLUTION = "conflict-resolution"
    CONFLICT_RESOLUTION_SUMMARY = "conflict-resolution-summary"
    SYNTHESIS_ATTEMPT = "synthesis-attempt"
    SYNTHESIS_ATTEMPT_SUMMARY = "synthesis-attempt-summary"
    OUTPUT_GENERATION = "output-generation"
    FINALIZE = "finalize"


STAGE_SEQUENCE: tuple[DialogueStage, ...] = tuple(DialogueStage)

SUMMARY_STAGES: frozenset[DialogueStage] = frozenset({
    DialogueStage.MUTUAL_REFLECTION_SUMMARY,
    DialogueStage.CONFLICT_RESOLUTION_SUMMARY,
    DialogueStage.SYNTHESIS_ATTEMPT_SUMMARY,
})

# Summary sub-stage -> the stage whose responses it condenses
SUMMARIZED_STAGE: dict[DialogueStage, DialogueStage] = {
    DialogueStage.MUTUAL_REFLECTION_SUMMARY: DialogueStage.MUTUAL_REFLECTION,
    DialogueStage.CONFLICT_RESOLUTION_SUMMARY: DialogueStage.CONFLICT_RESOLUTION,
    DialogueStage.SYNTHESIS_ATTEMPT_SUMMARY: DialogueStage.SYNTHESIS_ATTEMPT,
}


def stage_index(stage: DialogueStage) -> int:
    """Return the position of a stage within the fixed sequence."""
    return STAGE_SEQUENCE.index(stage)


class PersonalityProfile(BaseModel):
    """Static description of one participating agent.

    The free-text fields (personality, preferences, tone, communication
    style) only feed the keyword heuristics and the prompt preamble.
    The optional canned fields are attached verbatim to every response
    unless an override hook replaces them.
    """

    model_config = {"frozen": True}

    id: str = Field(..., min_length=1, description="Stable agent identity")
    name: str = Field(..., min_length=1, description="Display name")
    aliases: tuple[str, ...] = Field(
        default=(),
        description="Phonetic readings and other names the agent answers to",
    )
    style: ReasoningStyle
    priority: Priority
    memory_scope: MemoryScope = MemoryScope.SESSION
    personality: str = ""
    preferences: tuple[str, ...] = ()
    tone: str = ""
    communication_style: str = ""

    reasoning: Optional[str] = None
    assumptions: tuple[str, ...] = ()
    approach: Optional[str] = None
    references: tuple[str, ...] = ()

    def all_aliases(self) -> list[str]:
        """Identity, name, bracket-free name and aliases, de-duplicated."""
        names = [self.id, self.name]
        bare = self.name.split("(")[0].split("（")[0].strip()
        if bare:
            names.append(bare)
        names.extend(self.aliases)
        seen: list[str] = []
        for n in names:
            if n and n not in seen:
                seen.append(n)
        return seen


class MessageRole(str, Enum):
    USER = "user"
    AGENT = "agent"
    SYSTEM = "system"


class Message(BaseModel):
    """One transcript entry."""

    id: str = Field(default_factory=_new_id)
    author: str = Field(..., description="Agent id, or 'user' / 'system'")
    role: MessageRole = MessageRole.AGENT
    content: str
    timestamp: datetime = Field(default_factory=_now)
    stage: Optional[DialogueStage] = None
    sequence_number: Optional[int] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ReflectionRecord(BaseModel):
    """One agent's judgment about a peer's previous output."""

    target_agent_id: str
    reaction: str
    agreement: bool = False
    questions: list[str] = Field(default_factory=list, max_length=3)


class Vote(BaseModel):
    """A declared vote for the agent best suited to write the final output."""

    voter_id: str
    voted_for: Optional[str] = None
    reasoning: Optional[str] = None

    def is_valid(self, candidates: list[str]) -> bool:
        """Whether this vote may be counted against the candidate set."""
        if not self.voted_for:
            return False
        if self.voted_for == self.voter_id:
            return False
        return self.voted_for in candidates and self.voter_id in candidates


class StageResponse(BaseModel):
    """Structured output of one agent for one stage."""

    agent_id: str
    stage: DialogueStage
    content: str
    reasoning: str = ""
    assumptions: list[str] = Field(default_factory=list)
    approach: str = ""
    confidence: float = Field(default=0.6, ge=0.10, le=0.95)
    references: list[str] = Field(default_factory=list)
    reflections: list[ReflectionRecord] = Field(default_factory=list)
    vote: Optional[Vote] = None
    success: bool = Field(
        default=True,
        description="False when the content is fallback prose",
    )
    sequence_number: int = 1
    created_at: datetime = Field(default_factory=_now)


class StageRecord(BaseModel):
    """Completion record of one stage within one cycle."""

    stage: DialogueStage
    sequence_number: int
    started_at: datetime
    ended_at: datetime = Field(default_factory=_now)
    responses: list[StageResponse] = Field(default_factory=list)


class StageSummary(BaseModel):
    """Condensed record produced by a summary sub-stage."""

    stage: DialogueStage = Field(..., description="The stage that was summarized")
    content: str
    positions: dict[str, str] = Field(
        default_factory=dict,
        description="Speaker -> main position",
    )
    sequence_number: int = 1
    created_at: datetime = Field(default_factory=_now)


class GenerationParameters(BaseModel):
    """Sampling knobs derived from a personality profile."""

    model_config = {"frozen": True}

    temperature: float = Field(default=0.7, ge=0.1, le=1.0)
    top_p: float = Field(default=0.9, ge=0.7, le=1.0)
    repetition_penalty: float = Field(default=1.1, ge=1.0, le=1.3)
    presence_penalty: float = Field(default=0.1, ge=0.0, le=0.2)
    frequency_penalty: float = Field(default=0.1, ge=0.0, le=0.2)
    top_k: int = Field(default=40, ge=10, le=100)


class InteractionStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"


class InteractionRecord(BaseModel):
    """Audit record of one Reasoner invocation."""

    id: str = Field(default_factory=_new_id)
    session_id: str
    agent_id: str
    agent_name: str = ""
    stage: Optional[DialogueStage] = None
    sequence_number: int = 1
    timestamp: datetime = Field(default_factory=_now)
    prompt: str = ""
    output: str = ""
    duration_ms: float = 0.0
    status: InteractionStatus = InteractionStatus.SUCCESS
    error: Optional[str] = None


class ConsensusResult(BaseModel):
    """Outcome of vote resolution.

    Attributes:
        tally: Candidate id -> number of valid votes received.
        max_count: Highest count in the tally (0 with no valid votes).
        winners: Selected agent ids; never empty for a non-empty candidate set.
        tie: Whether more than one candidate shared the maximal count.
        resolved_by: "tally", "reasoner" or "fallback".
        votes: The votes that were counted.
    """

    tally: dict[str, int] = Field(default_factory=dict)
    max_count: int = 0
    winners: list[str] = Field(default_factory=list)
    tie: bool = False
    resolved_by: str = "tally"
    votes: list[Vote] = Field(default_factory=list)


class SessionStatus(str, Enum):
    ACTIVE = "active"        # Accepting stage advancement
    COMPLETED = "completed"  # A full cycle finished
    CONCLUDED = "concluded"  # Closed by the caller; no further cycles
    ERRORED = "errored"      # A stage failed irrecoverably
    ABORTED = "aborted"      # Cancelled by the caller


TERMINAL_STATUSES = frozenset({
    SessionStatus.CONCLUDED,
    SessionStatus.ERRORED,
    SessionStatus.ABORTED,
})


class Session(BaseModel):
    """One dialogue session and all of its history."""

    id: str = Field(default_factory=_new_id)
    title: str = ""
    language: Language = Language.EN
    agents: list[PersonalityProfile] = Field(default_factory=list)
    messages: list[Message] = Field(default_factory=list)
    current_stage: Optional[DialogueStage] = None
    stage_history: list[StageRecord] = Field(default_factory=list)
    summaries: list[StageSummary] = Field(default_factory=list)
    interactions: list[InteractionRecord] = Field(default_factory=list)
    sequence_number: int = 1
    status: SessionStatus = SessionStatus.ACTIVE
    error_message: Optional[str] = None
    consensus: Optional[ConsensusResult] = None
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    def agent_ids(self) -> list[str]:
        return [a.id for a in self.agents]

    def get_agent(self, agent_id: str) -> Optional[PersonalityProfile]:
        for agent in self.agents:
            if agent.id == agent_id:
                return agent
        return None

    def messages_for_sequence(self, sequence_number: int) -> list[Message]:
        return [m for m in self.messages if m.sequence_number == sequence_number]

    def responses_for(
        self,
        stage: DialogueStage,
        sequence_number: Optional[int] = None,
    ) -> list[StageResponse]:
        """Responses recorded for a stage in the given (default: current) cycle."""
        seq = sequence_number or self.sequence_number
        for record in self.stage_history:
            if record.stage == stage and record.sequence_number == seq:
                return list(record.responses)
        return []

    def completed_stages(self, sequence_number: Optional[int] = None) -> list[DialogueStage]:
        seq = sequence_number or self.sequence_number
        return [r.stage for r in self.stage_history if r.sequence_number == seq]

    def summaries_for(self, sequence_number: Optional[int] = None) -> list[StageSummary]:
        seq = sequence_number or self.sequence_number
        return [s for s in self.summaries if s.sequence_number == seq]

    def user_query(self, sequence_number: Optional[int] = None) -> str:
        """The user message that opened the given (default: current) cycle."""
        seq = sequence_number or self.sequence_number
        for message in self.messages:
            if message.role == MessageRole.USER and message.sequence_number == seq:
                return message.content
        return ""

    def touch(self) -> None:
        self.updated_at = _now()
