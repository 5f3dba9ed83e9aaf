"""Conflict identification between the reflection and resolution stages."""

from typing import Sequence

from pydantic import BaseModel, Field

from .heuristics import NO_ENGAGEMENT_REACTION
from .models import PersonalityProfile, StageResponse


class Conflict(BaseModel):
    """A disagreement the conflict-resolution stage should address."""

    id: str
    agents: list[str] = Field(default_factory=list)
    description: str
    severity: str = "medium"


def _excerpt(text: str, limit: int = 200) -> str:
    text = " ".join(text.split())
    return text if len(text) <= limit else text[:limit] + "..."


def identify_conflicts(
    thoughts: Sequence[StageResponse],
    reflections: Sequence[StageResponse],
    agents: Sequence[PersonalityProfile],
) -> list[Conflict]:
    """Turn disagreeing reflections into conflicts.

    Each reflection with ``agreement=False`` that actually engaged its
    target becomes one medium-severity conflict between the reflecting agent
    and the target. With no such disagreement and more than one thought, a
    single low-severity "diverse perspectives" conflict is returned so the
    resolution stage still has something to work on.

    Args:
        thoughts: Individual-thought responses of the current cycle
        reflections: Mutual-reflection responses of the current cycle
        agents: Session agents, used for display names

    Returns:
        Conflicts in reflection order
    """
    names = {a.id: a.name for a in agents}
    thought_by_agent = {t.agent_id: t for t in thoughts}
    conflicts: list[Conflict] = []

    for response in reflections:
        for record in response.reflections:
            if record.agreement or record.target_agent_id == response.agent_id:
                continue
            if record.reaction == NO_ENGAGEMENT_REACTION:
                continue
            target = thought_by_agent.get(record.target_agent_id)
            target_view = _excerpt(target.content) if target else ""
            source = names.get(response.agent_id, response.agent_id)
            dest = names.get(record.target_agent_id, record.target_agent_id)
            description = f"{source} challenges {dest}: {_excerpt(record.reaction)}"
            if target_view:
                description += f" (original position: {target_view})"
            conflicts.append(Conflict(
                id=f"conflict-{len(conflicts) + 1}",
                agents=[response.agent_id, record.target_agent_id],
                description=description,
                severity="medium",
            ))

    if not conflicts and len(thoughts) > 1:
        approaches = "; ".join(
            f"{names.get(t.agent_id, t.agent_id)}: {t.approach or _excerpt(t.content, 80)}"
            for t in thoughts
        )
        conflicts.append(Conflict(
            id="conflict-1",
            agents=[t.agent_id for t in thoughts],
            description=f"Diverse perspectives on the approach ({approaches})",
            severity="low",
        ))

    return conflicts


def format_conflicts(conflicts: Sequence[Conflict]) -> str:
    if not conflicts:
        return "(no conflicts identified)"
    return "\n".join(
        f"- [{c.severity}] {c.description}" for c in conflicts
    )
