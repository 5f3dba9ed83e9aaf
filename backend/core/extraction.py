"""Reflection and vote extraction from free-form agent output.

Both extractors are pattern based and stateless. They never raise: when
no signal is present they return an explicit "not found" result (a
no-engagement reflection, or a vote with ``voted_for=None``).
"""

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Iterable, Optional

from .heuristics import (
    BOLD_PATTERN,
    CODE_PATTERN,
    GENERIC_REACTION,
    MAX_QUESTIONS,
    MAX_VOTE_REASONING,
    MIN_QUESTION_LENGTH,
    NEGATIVE_TERMS,
    NO_ENGAGEMENT_REACTION,
    POSITIVE_TERMS,
    QUESTION_PATTERN,
    REACTION_LENGTH_RANGE,
    REASON_LABEL_PATTERN,
    VOTE_LABEL_PATTERN,
)
from .models import PersonalityProfile, ReflectionRecord, Vote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeerRef:
    """The names an agent can be referred to by."""

    id: str
    name: str = ""
    aliases: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_profile(cls, profile: PersonalityProfile) -> "PeerRef":
        return cls(id=profile.id, name=profile.name, aliases=tuple(profile.all_aliases()))

    def names(self) -> list[str]:
        """All names, longest first so that "Yuishin" wins over "Yui"."""
        names = {n for n in (self.id, self.name, *self.aliases) if n and n.strip()}
        return sorted(names, key=len, reverse=True)


def _is_ascii(text: str) -> bool:
    return all(ord(ch) < 128 for ch in text)


@lru_cache(maxsize=1024)
def _term_pattern(term: str) -> re.Pattern:
    """Word-bounded for ASCII terms, plain substring otherwise."""
    escaped = re.escape(term.lower())
    if _is_ascii(term):
        return re.compile(rf"(?<![a-z0-9_\-]){escaped}(?![a-z0-9_\-])")
    return re.compile(escaped)


def _contains_any(line: str, terms: Iterable[str]) -> bool:
    lowered = line.lower()
    return any(_term_pattern(term).search(lowered) for term in terms)


def _first_mention(text: str, peer: PeerRef) -> Optional[tuple[int, int]]:
    """Return (start, end) of the earliest mention of the peer in text."""
    lowered = text.lower()
    best: Optional[tuple[int, int]] = None
    for name in peer.names():
        match = _term_pattern(name).search(lowered)
        if match and (best is None or match.start() < best[0]):
            best = (match.start(), match.end())
    return best


def mentions(text: str, peer: PeerRef) -> bool:
    return _first_mention(text, peer) is not None


def _questions(lines: list[str]) -> list[str]:
    found: list[str] = []
    for line in lines:
        for clause in QUESTION_PATTERN.findall(line):
            clause = clause.strip(" \t*-_>#")
            if len(clause) > MIN_QUESTION_LENGTH and clause not in found:
                found.append(clause)
            if len(found) >= MAX_QUESTIONS:
                return found
    return found


def _reaction(lines: list[str]) -> str:
    low, high = REACTION_LENGTH_RANGE
    for line in lines:
        if low < len(line) < high:
            return line
    return GENERIC_REACTION


def extract_reflection(text: str, peer: PeerRef) -> ReflectionRecord:
    """Classify how the text engages with one peer."""
    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
    mention_lines = [line for line in lines if mentions(line, peer)]

    if not mention_lines:
        return ReflectionRecord(
            target_agent_id=peer.id,
            reaction=NO_ENGAGEMENT_REACTION,
            agreement=False,
            questions=[],
        )

    if any(_contains_any(line, NEGATIVE_TERMS) for line in mention_lines):
        agreement = False
    else:
        agreement = any(_contains_any(line, POSITIVE_TERMS) for line in mention_lines)

    return ReflectionRecord(
        target_agent_id=peer.id,
        reaction=_reaction(mention_lines),
        agreement=agreement,
        questions=_questions(mention_lines),
    )


def extract_reflections(text: str, peers: Iterable[PeerRef]) -> list[ReflectionRecord]:
    """Return one ReflectionRecord per peer, in peer order.

    Args:
        text: One agent's mutual-reflection output
        peers: The other participating agents

    Returns:
        Reflection records; unmentioned peers get a no-engagement record
    """
    return [extract_reflection(text, peer) for peer in peers]


def _clean_reasoning(text: str) -> str:
    text = text.strip().strip("*_`").strip()
    text = re.sub(r"^[\s:：,，.。\-–—)）]+", "", text)
    text = re.sub(r"^(?:because|since|as)\s+", "", text, flags=re.IGNORECASE)
    text = text.strip()
    if len(text) > MAX_VOTE_REASONING:
        text = text[:MAX_VOTE_REASONING].rstrip() + "..."
    return text


def _find_candidate(
    fragment: str,
    author_id: str,
    candidates: list[PeerRef],
) -> Optional[tuple[PeerRef, int]]:
    """Earliest non-author candidate named in fragment, with its end offset."""
    best: Optional[tuple[PeerRef, int, int]] = None
    for candidate in candidates:
        if candidate.id == author_id:
            continue
        span = _first_mention(fragment, candidate)
        if span and (best is None or span[0] < best[1]):
            best = (candidate, span[0], span[1])
    if best is None:
        return None
    return best[0], best[2]


def _match_exact(token: str, author_id: str, candidates: list[PeerRef]) -> Optional[PeerRef]:
    token = token.strip().strip("@").lower()
    for candidate in candidates:
        if candidate.id == author_id:
            continue
        if any(token == name.lower() for name in candidate.names()):
            return candidate
    return None


def _reason_after(text: str, offset: int) -> str:
    """Reasoning following a declaration that ends at offset."""
    remainder = text[offset:]
    labeled = REASON_LABEL_PATTERN.search(remainder)
    if labeled:
        return _clean_reasoning(labeled.group("reason"))
    for line in remainder.splitlines():
        if line.strip():
            return _clean_reasoning(line)
    return ""


def extract_vote(text: str, author_id: str, candidates: Iterable[PeerRef]) -> Vote:
    """Extract the vote declared in an output-generation response.

    Labeled declarations ("Vote: x", "Agent Vote: x", "投票：x") take
    precedence over emphasized identities (``**x**`` or a code span). Self
    references are skipped in both cases.

    Args:
        text: The agent's output
        author_id: Identity of the voting agent
        candidates: Every candidate, the author may be included

    Returns:
        Vote with ``voted_for`` set to the first non-self candidate found,
        or None when nothing was declared
    """
    text = text or ""
    pool = list(candidates)

    for match in VOTE_LABEL_PATTERN.finditer(text):
        rest = match.group("rest")
        rest_start = match.start("rest")
        if not rest.strip():
            # Label alone on its line; the declaration follows on the next one
            following = text[match.end():]
            stripped = following.lstrip()
            rest_start = match.end() + len(following) - len(stripped)
            rest = stripped.split("\n", 1)[0]
        found = _find_candidate(rest, author_id, pool)
        if not found:
            continue
        candidate, end = found
        reasoning = _clean_reasoning(rest[end:]) or _reason_after(text, rest_start + len(rest))
        return Vote(voter_id=author_id, voted_for=candidate.id, reasoning=reasoning or None)

    for pattern in (BOLD_PATTERN, CODE_PATTERN):
        for match in pattern.finditer(text):
            candidate = _match_exact(match.group(1), author_id, pool)
            if candidate:
                line_end = text.find("\n", match.end())
                line_end = len(text) if line_end == -1 else line_end
                reasoning = _clean_reasoning(text[match.end():line_end])
                if not reasoning:
                    reasoning = _reason_after(text, line_end)
                return Vote(voter_id=author_id, voted_for=candidate.id, reasoning=reasoning or None)

    logger.debug(f"No vote declaration found in output from {author_id}")
    return Vote(voter_id=author_id, voted_for=None)
