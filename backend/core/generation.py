"""Personality -> generation parameter mapping.

The mapping is a keyword heuristic: the profile's free text is matched
against the vocabularies in ``core.heuristics`` and each hit nudges the
baseline sampling knobs. Results are clamped and rounded so that equal
profiles always produce equal parameters.
"""

import re

from .heuristics import (
    ANALYTICAL_ADJUSTMENT,
    ANALYTICAL_KEYWORDS,
    CREATIVE_ADJUSTMENT,
    CREATIVE_KEYWORDS,
    GENTLE_ADJUSTMENT,
    GENTLE_KEYWORDS,
)
from .models import GenerationParameters, PersonalityProfile

BASELINE: dict[str, float] = {
    "temperature": 0.7,
    "top_p": 0.9,
    "repetition_penalty": 1.1,
    "presence_penalty": 0.1,
    "frequency_penalty": 0.1,
    "top_k": 40,
}

BOUNDS: dict[str, tuple[float, float]] = {
    "temperature": (0.1, 1.0),
    "top_p": (0.7, 1.0),
    "repetition_penalty": (1.0, 1.3),
    "presence_penalty": (0.0, 0.2),
    "frequency_penalty": (0.0, 0.2),
    "top_k": (10, 100),
}

_WORD = re.compile(r"[a-z][a-z\-]*")


def _profile_words(profile: PersonalityProfile) -> set[str]:
    text = " ".join([
        profile.personality,
        profile.tone,
        profile.communication_style,
        " ".join(profile.preferences),
    ]).lower()
    return set(_WORD.findall(text))


def _matches(words: set[str], vocabulary: frozenset[str]) -> int:
    """Count vocabulary entries present in the word set.

    A keyword matches an exact word or a word it prefixes ("story" matches
    "storytelling"), and counts once however often it appears.
    """
    count = 0
    for keyword in vocabulary:
        if any(word == keyword or word.startswith(keyword) for word in words):
            count += 1
    return count


def derive_generation_parameters(profile: PersonalityProfile) -> GenerationParameters:
    """Derive sampling parameters from a personality profile.

    Args:
        profile: The agent's personality profile

    Returns:
        Parameters clamped to their valid ranges, floats rounded to two
        decimals and top_k rounded to an integer
    """
    words = _profile_words(profile)
    values = dict(BASELINE)

    for vocabulary, adjustment in (
        (CREATIVE_KEYWORDS, CREATIVE_ADJUSTMENT),
        (ANALYTICAL_KEYWORDS, ANALYTICAL_ADJUSTMENT),
        (GENTLE_KEYWORDS, GENTLE_ADJUSTMENT),
    ):
        hits = _matches(words, vocabulary)
        if not hits:
            continue
        for knob, delta in adjustment.items():
            values[knob] += delta * hits

    clamped = {}
    for knob, value in values.items():
        low, high = BOUNDS[knob]
        value = min(max(value, low), high)
        clamped[knob] = int(round(value)) if knob == "top_k" else round(value, 2)

    return GenerationParameters(**clamped)
