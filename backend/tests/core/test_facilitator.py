"""Tests for core/facilitator.py."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from core.extraction import PeerRef
from core.facilitator import FACILITATOR_ID, Facilitator, parse_winner_ids, tally_votes
from core.interaction_log import InteractionLog
from core.models import DialogueStage, InteractionStatus, Language, Vote
from providers.stub import StubReasoner

CANDIDATES = ["alpha", "beta", "gamma"]


def _votes(*pairs) -> list[Vote]:
    return [Vote(voter_id=voter, voted_for=target) for voter, target in pairs]


class TestTallyVotes:
    """Tests for tally_votes."""

    def test_counts_in_candidate_order(self):
        tally, counted = tally_votes(
            _votes(("alpha", "gamma"), ("beta", "gamma"), ("gamma", "alpha")),
            CANDIDATES,
        )

        assert tally == {"alpha": 1, "gamma": 2}
        assert list(tally) == ["alpha", "gamma"]
        assert len(counted) == 3

    def test_self_votes_never_counted(self):
        tally, counted = tally_votes(
            _votes(("alpha", "alpha"), ("beta", "alpha")),
            CANDIDATES,
        )

        assert tally == {"alpha": 1}
        assert [v.voter_id for v in counted] == ["beta"]

    def test_null_and_unknown_votes_discarded(self):
        tally, counted = tally_votes(
            _votes(("alpha", None), ("beta", "zeta"), ("omega", "alpha")),
            CANDIDATES,
        )

        assert tally == {}
        assert counted == []

    def test_accepts_peer_refs(self):
        refs = [PeerRef(id=c) for c in CANDIDATES]
        tally, _ = tally_votes(_votes(("alpha", "beta")), refs)
        assert tally == {"beta": 1}


class TestFacilitatorResolve:
    """Tests for Facilitator.resolve."""

    @pytest.mark.asyncio
    async def test_majority_wins(self):
        result = await Facilitator().resolve(
            _votes(("alpha", "gamma"), ("beta", "gamma"), ("gamma", "alpha")),
            CANDIDATES,
        )

        assert result.winners == ["gamma"]
        assert result.max_count == 2
        assert result.tie is False
        assert result.resolved_by == "tally"

    @pytest.mark.asyncio
    async def test_tie_without_reasoner_keeps_tied_set(self):
        result = await Facilitator().resolve(
            _votes(("alpha", "beta"), ("beta", "alpha")),
            CANDIDATES,
        )

        assert result.tie is True
        assert result.winners == ["alpha", "beta"]
        assert result.resolved_by == "fallback"

    @pytest.mark.asyncio
    async def test_tie_resolved_by_reasoner(self):
        reasoner = StubReasoner(replies=["beta"])
        result = await Facilitator(reasoner=reasoner).resolve(
            _votes(("alpha", "beta"), ("beta", "alpha")),
            CANDIDATES,
        )

        assert result.winners == ["beta"]
        assert result.resolved_by == "reasoner"
        assert result.tie is True
        assert len(reasoner.calls) == 1
        assert "alpha" in reasoner.calls[0][0]

    @pytest.mark.asyncio
    async def test_tie_reasoner_may_name_several_winners(self):
        reasoner = StubReasoner(replies=["beta, alpha"])
        result = await Facilitator(reasoner=reasoner).resolve(
            _votes(("alpha", "beta"), ("beta", "alpha")),
            CANDIDATES,
        )

        assert result.winners == ["beta", "alpha"]

    @pytest.mark.asyncio
    async def test_tie_reasoner_naming_nobody_falls_back(self):
        reasoner = StubReasoner(replies=["nobody in particular"])
        result = await Facilitator(reasoner=reasoner).resolve(
            _votes(("alpha", "beta"), ("beta", "alpha")),
            CANDIDATES,
        )

        assert result.winners == ["alpha", "beta"]
        assert result.resolved_by == "fallback"

    @pytest.mark.asyncio
    async def test_tie_reasoner_failure_falls_back(self):
        result = await Facilitator(reasoner=StubReasoner(fail=True)).resolve(
            _votes(("alpha", "beta"), ("beta", "alpha")),
            CANDIDATES,
        )

        assert result.winners == ["alpha", "beta"]
        assert result.resolved_by == "fallback"

    @pytest.mark.asyncio
    async def test_tie_reasoner_exception_falls_back(self):
        reasoner = MagicMock()
        reasoner.execute = AsyncMock(side_effect=RuntimeError("connection reset"))
        result = await Facilitator(reasoner=reasoner).resolve(
            _votes(("alpha", "beta"), ("beta", "alpha")),
            CANDIDATES,
        )

        assert result.winners == ["alpha", "beta"]

    @pytest.mark.asyncio
    async def test_no_valid_votes_picks_first_candidate(self):
        result = await Facilitator().resolve(
            _votes(("alpha", "alpha"), ("beta", None)),
            CANDIDATES,
        )

        assert result.winners == ["alpha"]
        assert result.resolved_by == "fallback"
        assert result.tally == {}

    @pytest.mark.asyncio
    async def test_no_candidates(self):
        result = await Facilitator().resolve(_votes(("alpha", "beta")), [])

        assert result.winners == []
        assert result.resolved_by == "fallback"

    @pytest.mark.asyncio
    async def test_winners_never_empty_for_candidates(self):
        """Any vote pattern should produce at least one winner."""
        patterns = [
            [],
            _votes(("alpha", "beta")),
            _votes(("alpha", "beta"), ("beta", "gamma"), ("gamma", "alpha")),
            _votes(("alpha", "alpha"), ("beta", "beta"), ("gamma", "gamma")),
        ]
        for votes in patterns:
            result = await Facilitator().resolve(votes, CANDIDATES)
            assert result.winners
            assert set(result.winners) <= set(CANDIDATES)


class TestTieBreakRecording:
    """Tests for the interaction records of the tie-break call."""

    TIE = (("alpha", "beta"), ("beta", "alpha"))

    @pytest.mark.asyncio
    async def test_success_recorded(self):
        log = InteractionLog()
        facilitator = Facilitator(reasoner=StubReasoner(replies=["beta"]), interaction_log=log)

        await facilitator.resolve(
            _votes(*self.TIE), CANDIDATES, session_id="s1", sequence_number=2
        )

        [record] = log.for_session("s1")
        assert record.agent_id == FACILITATOR_ID
        assert record.agent_name == "Facilitator"
        assert record.stage == DialogueStage.FINALIZE
        assert record.sequence_number == 2
        assert record.status == InteractionStatus.SUCCESS
        assert record.output == "beta"
        assert record.prompt.startswith("Several agents received the same number of votes")
        assert record.error is None
        assert record.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_failure_recorded(self):
        log = InteractionLog()
        facilitator = Facilitator(
            reasoner=StubReasoner(fail=True, error="rate limited"),
            interaction_log=log,
        )

        await facilitator.resolve(_votes(*self.TIE), CANDIDATES, session_id="s1")

        [record] = log.for_session("s1")
        assert record.status == InteractionStatus.ERROR
        assert record.error == "rate limited"
        assert record.output == ""

    @pytest.mark.asyncio
    async def test_exception_recorded(self):
        log = InteractionLog()
        reasoner = MagicMock()
        reasoner.execute = AsyncMock(side_effect=RuntimeError("connection reset"))
        facilitator = Facilitator(reasoner=reasoner, interaction_log=log)

        result = await facilitator.resolve(_votes(*self.TIE), CANDIDATES, session_id="s1")

        assert result.resolved_by == "fallback"
        [record] = log.for_session("s1")
        assert record.status == InteractionStatus.ERROR
        assert record.error == "connection reset"

    @pytest.mark.asyncio
    async def test_no_record_without_tie(self):
        log = InteractionLog()
        facilitator = Facilitator(reasoner=StubReasoner(), interaction_log=log)

        await facilitator.resolve(
            _votes(("alpha", "beta"), ("gamma", "beta")), CANDIDATES, session_id="s1"
        )

        assert log.for_session("s1") == []

    @pytest.mark.asyncio
    async def test_language_per_call(self):
        reasoner = StubReasoner(replies=["beta"])
        facilitator = Facilitator(reasoner=reasoner, language=Language.EN)

        await facilitator.resolve(_votes(*self.TIE), CANDIDATES, language=Language.JA)

        instruction = reasoner.calls[0][0]
        assert instruction.startswith("最終回答の担当として")
        assert "Several agents" not in instruction


class TestParseWinnerIds:
    """Tests for parse_winner_ids."""

    def test_exact_tokens(self):
        refs = [PeerRef(id="alpha", name="Alpha"), PeerRef(id="beta", name="Beta")]
        assert parse_winner_ids("`Beta`", refs) == ["beta"]

    def test_names_map_to_ids(self):
        refs = [PeerRef(id="a1", name="Alpha"), PeerRef(id="b2", name="Beta")]
        assert parse_winner_ids("Alpha、Beta", refs) == ["a1", "b2"]

    def test_mentions_in_prose(self):
        refs = [PeerRef(id="alpha", name="Alpha"), PeerRef(id="beta", name="Beta")]
        assert parse_winner_ids("I would pick Beta overall.", refs) == ["beta"]

    def test_unknown_names_dropped(self):
        refs = [PeerRef(id="alpha", name="Alpha")]
        assert parse_winner_ids("Zeta, Omega", refs) == []
