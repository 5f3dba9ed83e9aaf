"""
Event mapper for translating LangGraph custom events to DialogueEvents.

The pipeline reports progress as plain dicts through get_stream_writer();
this module turns them into typed DialogueEvent objects.
"""

import logging
from typing import Any, AsyncIterator

from core.models import ConsensusResult, DialogueStage, StageResponse

from .models import DialogueEvent, DialogueEventType

logger = logging.getLogger(__name__)


class EventMapper:
    """
    Maps LangGraph streaming events to DialogueEvent objects.

    Also keeps running counters so stage_completed events can report how
    far the cycle has progressed.
    """

    def __init__(self, session_id: str, sequence_number: int = 1):
        self.session_id = session_id
        self.sequence_number = sequence_number

        self.current_stage: DialogueStage | None = None
        self.stages_completed = 0
        self.agents_completed = 0

    async def map_event(self, mode: str, data: Any) -> AsyncIterator[DialogueEvent]:
        """
        Map a LangGraph stream chunk to DialogueEvents.

        Args:
            mode: Stream mode; only "custom" carries dialogue events
            data: The data from the stream

        Yields:
            DialogueEvent objects
        """
        if mode != "custom" or not isinstance(data, dict):
            return
        event = self.map_custom(data)
        if event is not None:
            yield event

    def map_custom(self, data: dict[str, Any]) -> DialogueEvent | None:
        """Map one custom event dict; unknown types map to None."""
        event_type = data.get("type", "")

        if event_type == "stage_started":
            return self._on_stage_started(data)
        elif event_type == "agent_completed":
            return self._on_agent_completed(data)
        elif event_type == "stage_completed":
            return self._on_stage_completed(data)
        elif event_type == "consensus_resolved":
            return self._on_consensus_resolved(data)
        elif event_type == "session_completed":
            return self._event(
                DialogueEventType.SESSION_COMPLETED,
                progress={
                    "stages_completed": self.stages_completed,
                    "winners": data.get("winners", []),
                },
            )
        elif event_type == "session_errored":
            return self._event(
                DialogueEventType.SESSION_ERRORED,
                stage=self._stage(data),
                error=data.get("error", ""),
            )
        elif event_type == "session_aborted":
            return self._event(
                DialogueEventType.SESSION_ABORTED,
                stage=self.current_stage,
                error=data.get("reason"),
            )

        logger.debug(f"Ignoring unknown event type: {event_type!r}")
        return None

    def _event(self, event_type: DialogueEventType, **fields: Any) -> DialogueEvent:
        return DialogueEvent(
            type=event_type,
            session_id=self.session_id,
            sequence_number=self.sequence_number,
            **fields,
        )

    def _stage(self, data: dict[str, Any]) -> DialogueStage | None:
        value = data.get("stage")
        return DialogueStage(value) if value else None

    def _on_stage_started(self, data: dict[str, Any]) -> DialogueEvent:
        self.current_stage = self._stage(data)
        self.agents_completed = 0
        return self._event(
            DialogueEventType.STAGE_STARTED,
            stage=self.current_stage,
            progress={"agents": data.get("agents", [])},
        )

    def _on_agent_completed(self, data: dict[str, Any]) -> DialogueEvent:
        self.agents_completed += 1
        response = data.get("response")
        return self._event(
            DialogueEventType.AGENT_COMPLETED,
            stage=self._stage(data),
            agent_id=data.get("agent_id"),
            response=StageResponse.model_validate(response) if response else None,
        )

    def _on_stage_completed(self, data: dict[str, Any]) -> DialogueEvent:
        self.stages_completed += 1
        return self._event(
            DialogueEventType.STAGE_COMPLETED,
            stage=self._stage(data),
            summary=data.get("summary"),
            progress={
                "response_count": data.get("response_count", 0),
                "stages_completed": self.stages_completed,
            },
        )

    def _on_consensus_resolved(self, data: dict[str, Any]) -> DialogueEvent:
        consensus = data.get("consensus")
        return self._event(
            DialogueEventType.CONSENSUS_RESOLVED,
            stage=DialogueStage.FINALIZE,
            consensus=ConsensusResult.model_validate(consensus) if consensus else None,
        )
