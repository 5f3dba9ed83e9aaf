"""Tests for core/conflicts.py."""

from core.conflicts import Conflict, format_conflicts, identify_conflicts
from core.heuristics import NO_ENGAGEMENT_REACTION
from core.models import DialogueStage, ReflectionRecord, StageResponse


def _thought(agent_id: str, content: str, approach: str = "") -> StageResponse:
    return StageResponse(
        agent_id=agent_id,
        stage=DialogueStage.INDIVIDUAL_THOUGHT,
        content=content,
        approach=approach,
    )


def _reflection(agent_id: str, *records: ReflectionRecord) -> StageResponse:
    return StageResponse(
        agent_id=agent_id,
        stage=DialogueStage.MUTUAL_REFLECTION,
        content="...",
        reflections=list(records),
    )


class TestIdentifyConflicts:
    """Tests for identify_conflicts."""

    def test_disagreement_becomes_conflict(self, profiles):
        thoughts = [
            _thought("logician", "Start from definitions."),
            _thought("critic", "Start from failure cases."),
        ]
        reflections = [
            _reflection(
                "logician",
                ReflectionRecord(
                    target_agent_id="critic",
                    reaction="Critic overlooks how rare those failures are.",
                    agreement=False,
                ),
            ),
        ]

        conflicts = identify_conflicts(thoughts, reflections, profiles)

        assert len(conflicts) == 1
        conflict = conflicts[0]
        assert conflict.id == "conflict-1"
        assert conflict.agents == ["logician", "critic"]
        assert conflict.severity == "medium"
        assert conflict.description.startswith("Logician challenges Critic:")
        assert "Start from failure cases." in conflict.description

    def test_conflict_ids_are_sequential(self, profiles):
        reflections = [
            _reflection(
                "logician",
                ReflectionRecord(target_agent_id="critic", reaction="Too narrow a view.", agreement=False),
                ReflectionRecord(target_agent_id="poet", reaction="Too loose a view.", agreement=False),
            ),
        ]

        conflicts = identify_conflicts([], reflections, profiles)

        assert [c.id for c in conflicts] == ["conflict-1", "conflict-2"]

    def test_agreement_yields_diverse_perspectives(self, profiles):
        thoughts = [
            _thought("logician", "Define terms.", approach="deductive"),
            _thought("poet", "Tell a story."),
        ]
        reflections = [
            _reflection(
                "logician",
                ReflectionRecord(target_agent_id="poet", reaction="Poet is right.", agreement=True),
            ),
        ]

        conflicts = identify_conflicts(thoughts, reflections, profiles)

        assert len(conflicts) == 1
        assert conflicts[0].severity == "low"
        assert conflicts[0].agents == ["logician", "poet"]
        assert conflicts[0].description.startswith("Diverse perspectives on the approach")
        assert "Logician: deductive" in conflicts[0].description

    def test_no_engagement_records_ignored(self, profiles):
        reflections = [
            _reflection(
                "critic",
                ReflectionRecord(target_agent_id="poet", reaction=NO_ENGAGEMENT_REACTION),
            ),
        ]

        assert identify_conflicts([_thought("critic", "x")], reflections, profiles) == []

    def test_single_thought_without_conflicts(self, profiles):
        assert identify_conflicts([_thought("poet", "Alone.")], [], profiles) == []


class TestFormatConflicts:
    """Tests for format_conflicts."""

    def test_empty(self):
        assert format_conflicts([]) == "(no conflicts identified)"

    def test_one_line_per_conflict(self):
        text = format_conflicts([
            Conflict(id="conflict-1", description="A vs B"),
            Conflict(id="conflict-2", description="C vs D", severity="low"),
        ])

        assert text == "- [medium] A vs B\n- [low] C vs D"
