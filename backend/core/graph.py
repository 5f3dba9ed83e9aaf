"""LangGraph state and graph definition for a staged dialogue cycle.

Each dialogue stage is one node. After every node the router asks the
pipeline which stage comes next, so disabled summary sub-stages are skipped
and a partially advanced session resumes where it stopped.

Progress events are written with get_stream_writer(); consume them with
graph.astream(state, stream_mode="custom").
"""

import logging
import operator
from typing import Annotated, Any, TypedDict

from langgraph.config import get_stream_writer
from langgraph.graph import END, StateGraph

from modules.dialogue.exceptions import SessionAbortedError

from .models import STAGE_SEQUENCE, DialogueStage, Session, SessionStatus
from .pipeline import StagePipeline

logger = logging.getLogger(__name__)

COMPLETE = "complete"


class DialogueState(TypedDict):
    """State passed through the dialogue graph.

    The session object is mutated in place by the pipeline; the graph only
    tracks which stages ran during this invocation.
    """

    pipeline: StagePipeline
    session: Session
    completed_stages: Annotated[list[str], operator.add]  # Append-only
    aborted: bool


def _writer():
    try:
        return get_stream_writer()
    except RuntimeError:
        # Outside a streaming run
        return lambda event: None


def make_stage_node(stage: DialogueStage):
    """Build the node function that runs one stage."""

    async def run(state: DialogueState) -> dict[str, Any]:
        writer = _writer()
        pipeline, session = state["pipeline"], state["session"]
        try:
            await pipeline.run_stage(session, stage, emit=writer)
        except SessionAbortedError as e:
            logger.info(f"[{session.id}] Stopping at {stage.value}: {e.message}")
            writer({
                "type": "session_aborted",
                "session_id": session.id,
                "reason": session.error_message,
            })
            return {"aborted": True}
        return {"completed_stages": [stage.value]}

    run.__name__ = f"run_{stage.name.lower()}"
    return run


async def complete_cycle(state: DialogueState) -> dict[str, Any]:
    """Mark the cycle completed once finalize has run."""
    state["pipeline"].complete(state["session"], _writer())
    return {}


def route_next(state: DialogueState) -> str:
    """Pick the next node: a stage, "complete" or END.

    Returns:
        END if the session was aborted or errored
        COMPLETE after finalize
        The next stage's value otherwise
    """
    session = state["session"]
    if state.get("aborted") or session.status in (SessionStatus.ABORTED, SessionStatus.ERRORED):
        return END
    stage = state["pipeline"].next_stage(session)
    if stage is None:
        return COMPLETE
    return stage.value


def build_graph():
    """Build and return the compiled dialogue graph.

    Graph structure:
        [entry router] -> stage -> [router] -> stage ... -> finalize -> complete -> END

    Returns:
        Compiled StateGraph ready for execution
    """
    graph = StateGraph(DialogueState)

    path_map = {stage.value: stage.value for stage in STAGE_SEQUENCE}
    path_map[COMPLETE] = COMPLETE
    path_map[END] = END

    for stage in STAGE_SEQUENCE:
        graph.add_node(stage.value, make_stage_node(stage))
        graph.add_conditional_edges(stage.value, route_next, path_map)
    graph.add_node(COMPLETE, complete_cycle)

    graph.set_conditional_entry_point(route_next, path_map)
    graph.add_edge(COMPLETE, END)

    return graph.compile()
