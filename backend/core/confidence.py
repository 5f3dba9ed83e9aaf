"""Heuristic confidence scoring for stage responses.

The score is a bounded sum of table-driven deltas. It is meant for
ranking and display, not as a calibrated probability.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from .models import DialogueStage, Message, Priority, ReasoningStyle

BASELINE = 0.6
MIN_CONFIDENCE = 0.10
MAX_CONFIDENCE = 0.95

STYLE_DELTAS: dict[ReasoningStyle, float] = {
    ReasoningStyle.LOGICAL: 0.10,
    ReasoningStyle.CRITICAL: -0.05,
    ReasoningStyle.INTUITIVE: 0.05,
    ReasoningStyle.META: 0.15,
    ReasoningStyle.EMOTIVE: 0.02,
    ReasoningStyle.ANALYTICAL: 0.08,
}

PRIORITY_DELTAS: dict[Priority, float] = {
    Priority.PRECISION: -0.10,
    Priority.BREADTH: 0.05,
    Priority.DEPTH: 0.02,
    Priority.BALANCE: 0.03,
}

STAGE_DELTAS: dict[DialogueStage, float] = {
    DialogueStage.INDIVIDUAL_THOUGHT: 0.05,
    DialogueStage.MUTUAL_REFLECTION: 0.02,
    DialogueStage.CONFLICT_RESOLUTION: -0.05,
    DialogueStage.SYNTHESIS_ATTEMPT: -0.03,
    DialogueStage.OUTPUT_GENERATION: 0.03,
}

PERFORMANCE_TARGET = 0.8
PERFORMANCE_WEIGHT = 0.3
PERFORMANCE_LIMIT = 0.10


@dataclass
class ConfidenceBreakdown:
    """Every delta that went into a confidence score."""

    baseline: float = BASELINE
    style: float = 0.0
    priority: float = 0.0
    stage: float = 0.0
    context: float = 0.0
    performance: float = 0.0
    error_rate: float = 0.0
    notes: list[str] = field(default_factory=list)

    @property
    def raw(self) -> float:
        return (
            self.baseline
            + self.style
            + self.priority
            + self.stage
            + self.context
            + self.performance
            + self.error_rate
        )

    @property
    def total(self) -> float:
        return round(min(max(self.raw, MIN_CONFIDENCE), MAX_CONFIDENCE), 2)


def context_delta(context: Sequence[Message]) -> float:
    """Penalize long or contentious context, reward short context."""
    if not context:
        return 0.0

    delta = 0.0
    length = len(context)
    if length > 20:
        delta -= 0.05
    elif length > 10:
        delta -= 0.02
    elif length < 5:
        delta += 0.02

    stages = {m.stage for m in context if m.stage is not None}
    if DialogueStage.CONFLICT_RESOLUTION in stages:
        delta -= 0.03
    if len(stages) > 2:
        delta -= 0.02
    return delta


def performance_delta(history: Optional[tuple[int, int]]) -> float:
    """(success_rate - 0.8) * 0.3, clamped to +/-0.10."""
    if not history:
        return 0.0
    success, total = history
    if total <= 0:
        return 0.0
    delta = (success / total - PERFORMANCE_TARGET) * PERFORMANCE_WEIGHT
    return max(-PERFORMANCE_LIMIT, min(PERFORMANCE_LIMIT, delta))


def error_rate_delta(error_history: Optional[tuple[int, int]]) -> float:
    if not error_history:
        return 0.0
    success, total = error_history
    if total <= 0:
        return 0.0
    error_rate = (total - success) / total
    if error_rate > 0.3:
        return -0.15
    if error_rate > 0.1:
        return -0.08
    if error_rate < 0.05:
        return 0.05
    return 0.0


def confidence_breakdown(
    style: ReasoningStyle,
    priority: Priority,
    stage: Optional[DialogueStage] = None,
    context: Optional[Sequence[Message]] = None,
    history: Optional[tuple[int, int]] = None,
    error_history: Optional[tuple[int, int]] = None,
) -> ConfidenceBreakdown:
    """Compute the individual confidence deltas.

    Args:
        style: Agent reasoning style
        priority: Agent priority
        stage: Stage the response belongs to
        context: Messages visible to the agent
        history: (successful, total) invocations of this agent
        error_history: (successful, total) invocations from an external source

    Returns:
        ConfidenceBreakdown whose ``total`` is the clamped score
    """
    breakdown = ConfidenceBreakdown(
        style=STYLE_DELTAS.get(style, 0.0),
        priority=PRIORITY_DELTAS.get(priority, 0.0),
        stage=STAGE_DELTAS.get(stage, 0.0) if stage else 0.0,
        context=context_delta(context or []),
        performance=performance_delta(history),
        error_rate=error_rate_delta(error_history),
    )
    if not MIN_CONFIDENCE <= breakdown.raw <= MAX_CONFIDENCE:
        breakdown.notes.append(f"clamped from {breakdown.raw:.3f}")
    return breakdown


def estimate_confidence(
    style: ReasoningStyle,
    priority: Priority,
    stage: Optional[DialogueStage] = None,
    context: Optional[Sequence[Message]] = None,
    history: Optional[tuple[int, int]] = None,
    error_history: Optional[tuple[int, int]] = None,
) -> float:
    """Return a confidence score in [0.10, 0.95]."""
    return confidence_breakdown(
        style, priority, stage, context, history, error_history
    ).total
