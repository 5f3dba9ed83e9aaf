"""Vote tallying and tie-break resolution for the finalize stage.

The Facilitator never raises. It always returns at least one winner for a
non-empty candidate set:

- a single top-voted candidate wins outright
- a tie is put to a secondary Reasoner call asking for all co-equal winners
- if that call is unavailable, fails or names nobody valid, the tied set wins
- with no valid votes at all, the first candidate wins
"""

import logging
import re
import time
from typing import Optional, Sequence, Union

from providers.base import Reasoner, ReasonerResult

from .extraction import PeerRef, mentions
from .interaction_log import InteractionLog
from .models import (
    ConsensusResult,
    DialogueStage,
    InteractionRecord,
    InteractionStatus,
    Language,
    Vote,
)
from .prompts import render_tie_break

logger = logging.getLogger(__name__)

FACILITATOR_ID = "facilitator"

Candidate = Union[PeerRef, str]

_SEPARATORS = re.compile(r"[,、，\n;]+")


def _as_refs(candidates: Sequence[Candidate]) -> list[PeerRef]:
    return [c if isinstance(c, PeerRef) else PeerRef(id=c) for c in candidates]


def tally_votes(
    votes: Sequence[Vote],
    candidates: Sequence[Candidate],
) -> tuple[dict[str, int], list[Vote]]:
    """Count valid votes per candidate.

    Votes without a target, self-votes and votes naming (or cast by)
    someone outside the candidate set are discarded.

    Returns:
        (tally in candidate order with zero-count candidates omitted, counted votes)
    """
    ids = [c.id for c in _as_refs(candidates)]
    counted: list[Vote] = []
    for vote in votes:
        if vote.is_valid(ids):
            counted.append(vote)
        else:
            logger.debug(f"Discarding vote {vote.voter_id} -> {vote.voted_for}")

    counts = {agent_id: 0 for agent_id in ids}
    for vote in counted:
        counts[vote.voted_for] += 1
    return {k: v for k, v in counts.items() if v > 0}, counted


class Facilitator:
    """Resolves the output-generation votes into a winner set.

    Args:
        reasoner: Optional Reasoner for the tie-break; None skips straight
                  to the deterministic fallback
        language: Default language of the tie-break instruction
        interaction_log: Where tie-break calls are recorded (None = not recorded)
    """

    def __init__(
        self,
        reasoner: Optional[Reasoner] = None,
        language: Language = Language.EN,
        interaction_log: Optional[InteractionLog] = None,
    ):
        self.reasoner = reasoner
        self.language = language
        self.interaction_log = interaction_log

    async def resolve(
        self,
        votes: Sequence[Vote],
        candidates: Sequence[Candidate],
        *,
        session_id: str = "",
        sequence_number: int = 1,
        language: Optional[Language] = None,
    ) -> ConsensusResult:
        """Pick the winner set.

        Args:
            votes: Declared votes, valid or not
            candidates: Agents eligible to win
            session_id: Session the tie-break call is recorded under
            sequence_number: Current cycle
            language: Tie-break instruction language (defaults to the facilitator's)
        """
        refs = _as_refs(candidates)
        if not refs:
            logger.warning("Vote resolution requested with no candidates")
            return ConsensusResult(resolved_by="fallback")

        tally, counted = tally_votes(votes, refs)
        if not counted:
            logger.info(f"No valid votes; defaulting to first candidate {refs[0].id}")
            return ConsensusResult(winners=[refs[0].id], resolved_by="fallback")

        max_count = max(tally.values())
        tied = [agent_id for agent_id, count in tally.items() if count == max_count]
        result = ConsensusResult(
            tally=tally,
            max_count=max_count,
            winners=tied,
            tie=len(tied) > 1,
            resolved_by="tally",
            votes=counted,
        )
        if not result.tie:
            return result

        chosen = await self._break_tie(
            counted,
            tally,
            refs,
            tied,
            session_id,
            sequence_number,
            language or self.language,
        )
        if chosen:
            logger.info(f"Tie between {tied} resolved by reasoner: {chosen}")
            return result.model_copy(update={"winners": chosen, "resolved_by": "reasoner"})

        logger.info(f"Tie between {tied} kept as the winner set")
        return result.model_copy(update={"resolved_by": "fallback"})

    async def _break_tie(
        self,
        votes: Sequence[Vote],
        tally: dict[str, int],
        candidates: Sequence[PeerRef],
        tied: Sequence[str],
        session_id: str,
        sequence_number: int,
        language: Language,
    ) -> list[str]:
        """Ask the Reasoner for the co-equal winners; [] when unusable."""
        if self.reasoner is None:
            return []

        names = {c.id: c.name or c.id for c in candidates}
        vote_summary = "\n".join(
            f"- {v.voter_id} -> {v.voted_for}: {v.reasoning or '(no reasoning given)'}"
            for v in votes
        )
        tally_text = "\n".join(
            f"- {agent_id} ({names[agent_id]}): {count}"
            + (" [tied]" if agent_id in tied else "")
            for agent_id, count in tally.items()
        )
        candidate_text = "\n".join(f"- {c.id} ({names[c.id]})" for c in candidates)
        instruction = render_tie_break(vote_summary, tally_text, candidate_text, language)

        start = time.perf_counter()
        try:
            result = await self.reasoner.execute(instruction)
        except Exception as e:
            logger.warning(f"Tie-break reasoner raised: {e}")
            result = ReasonerResult(success=False, error=str(e))
        duration = result.duration_ms or (time.perf_counter() - start) * 1000

        self._record(session_id, sequence_number, instruction, result, duration)
        if not result.success:
            logger.warning(f"Tie-break reasoner failed: {result.error}")
            return []
        return parse_winner_ids(result.content, candidates)

    def _record(
        self,
        session_id: str,
        sequence_number: int,
        prompt: str,
        result: ReasonerResult,
        duration_ms: float,
    ) -> None:
        if self.interaction_log is None:
            return
        if result.success:
            status = InteractionStatus.SUCCESS
        elif "timed out" in (result.error or "").lower():
            status = InteractionStatus.TIMEOUT
        else:
            status = InteractionStatus.ERROR
        self.interaction_log.record(InteractionRecord(
            session_id=session_id,
            agent_id=FACILITATOR_ID,
            agent_name="Facilitator",
            stage=DialogueStage.FINALIZE,
            sequence_number=sequence_number,
            prompt=prompt,
            output=result.content,
            duration_ms=duration_ms,
            status=status,
            error=result.error,
        ))


def parse_winner_ids(content: str, candidates: Sequence[PeerRef]) -> list[str]:
    """Map a comma-separated answer back to candidate ids.

    Each token is matched exactly against candidate names first; if no
    token matches, any candidate mentioned anywhere in the text is used.
    Unknown names are dropped.
    """
    chosen: list[str] = []
    for token in _SEPARATORS.split(content or ""):
        token = token.strip().strip("`*_.-\"'[]() ").lower()
        if not token:
            continue
        for candidate in candidates:
            if any(token == name.lower() for name in candidate.names()):
                if candidate.id not in chosen:
                    chosen.append(candidate.id)
                break

    if chosen:
        return chosen
    return [c.id for c in candidates if mentions(content or "", c)]
