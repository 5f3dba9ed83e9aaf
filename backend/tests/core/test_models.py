"""Tests for core/models.py."""

import pytest
from pydantic import ValidationError

from core.models import (
    STAGE_SEQUENCE,
    SUMMARIZED_STAGE,
    SUMMARY_STAGES,
    DialogueStage,
    GenerationParameters,
    Message,
    MessageRole,
    ReflectionRecord,
    Session,
    StageRecord,
    StageResponse,
    StageSummary,
    Vote,
    stage_index,
)

from tests.conftest import make_profile


class TestStageSequence:
    """Tests for the fixed stage order."""

    def test_nine_stages_in_order(self):
        assert len(STAGE_SEQUENCE) == 9
        assert STAGE_SEQUENCE[0] == DialogueStage.INDIVIDUAL_THOUGHT
        assert STAGE_SEQUENCE[-1] == DialogueStage.FINALIZE

    def test_summary_stages_follow_their_source(self):
        for summary_stage in SUMMARY_STAGES:
            source = SUMMARIZED_STAGE[summary_stage]
            assert stage_index(summary_stage) == stage_index(source) + 1


class TestPersonalityProfile:
    """Tests for PersonalityProfile."""

    def test_all_aliases(self):
        profile = make_profile("yui", name="結心 (Yui)", aliases=("ゆい", "yui"))
        assert profile.all_aliases() == ["yui", "結心 (Yui)", "結心", "ゆい"]

    def test_is_frozen(self):
        profile = make_profile("poet")
        with pytest.raises(ValidationError):
            profile.name = "Other"

    def test_requires_id(self):
        with pytest.raises(ValidationError):
            make_profile("")


class TestVote:
    """Tests for Vote.is_valid."""

    candidates = ["a", "b", "c"]

    def test_valid_vote(self):
        assert Vote(voter_id="a", voted_for="b").is_valid(self.candidates)

    def test_null_vote(self):
        assert not Vote(voter_id="a").is_valid(self.candidates)

    def test_self_vote(self):
        assert not Vote(voter_id="a", voted_for="a").is_valid(self.candidates)

    def test_unknown_target(self):
        assert not Vote(voter_id="a", voted_for="z").is_valid(self.candidates)

    def test_unknown_voter(self):
        assert not Vote(voter_id="z", voted_for="a").is_valid(self.candidates)


class TestStageResponse:
    """Tests for StageResponse bounds."""

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            StageResponse(agent_id="a", stage=DialogueStage.FINALIZE, content="x", confidence=0.99)

    def test_questions_capped(self):
        with pytest.raises(ValidationError):
            ReflectionRecord(target_agent_id="a", reaction="r", questions=["1", "2", "3", "4"])


class TestGenerationParameters:
    """Tests for GenerationParameters."""

    def test_out_of_range_rejected(self):
        with pytest.raises(ValidationError):
            GenerationParameters(temperature=1.5)

    def test_hashable(self):
        assert hash(GenerationParameters()) == hash(GenerationParameters())


class TestSession:
    """Tests for Session helpers."""

    def test_agent_lookup(self, session):
        assert session.agent_ids() == ["logician", "critic", "poet"]
        assert session.get_agent("critic").name == "Critic"
        assert session.get_agent("nobody") is None

    def test_responses_for_cycle(self, session):
        first = StageResponse(agent_id="poet", stage=DialogueStage.INDIVIDUAL_THOUGHT, content="one")
        second = StageResponse(agent_id="poet", stage=DialogueStage.INDIVIDUAL_THOUGHT, content="two")
        session.stage_history = [
            StageRecord(stage=DialogueStage.INDIVIDUAL_THOUGHT, sequence_number=1,
                        started_at=first.created_at, responses=[first]),
            StageRecord(stage=DialogueStage.INDIVIDUAL_THOUGHT, sequence_number=2,
                        started_at=second.created_at, responses=[second]),
        ]
        session.sequence_number = 2

        assert session.responses_for(DialogueStage.INDIVIDUAL_THOUGHT)[0].content == "two"
        assert session.responses_for(DialogueStage.INDIVIDUAL_THOUGHT, 1)[0].content == "one"
        assert session.responses_for(DialogueStage.FINALIZE) == []
        assert session.completed_stages(1) == [DialogueStage.INDIVIDUAL_THOUGHT]

    def test_user_query_per_cycle(self, session):
        session.messages = [
            Message(author="user", role=MessageRole.USER, content="first", sequence_number=1),
            Message(author="poet", content="reply", sequence_number=1),
            Message(author="user", role=MessageRole.USER, content="second", sequence_number=2),
        ]
        session.sequence_number = 2

        assert session.user_query() == "second"
        assert session.user_query(1) == "first"
        assert len(session.messages_for_sequence(1)) == 2

    def test_summaries_for_cycle(self, session):
        session.summaries = [
            StageSummary(stage=DialogueStage.MUTUAL_REFLECTION, content="a", sequence_number=1),
            StageSummary(stage=DialogueStage.MUTUAL_REFLECTION, content="b", sequence_number=2),
        ]

        assert [s.content for s in session.summaries_for()] == ["a"]

    def test_touch_updates_timestamp(self, session):
        before = session.updated_at
        session.touch()
        assert session.updated_at >= before

    def test_json_round_trip(self, session):
        restored = Session.model_validate_json(session.model_dump_json())
        assert restored == session
