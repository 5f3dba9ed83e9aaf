"""Tests for core/generation.py."""

import pytest

from core.generation import BASELINE, BOUNDS, derive_generation_parameters
from core.models import GenerationParameters

from tests.conftest import make_profile


class TestDeriveGenerationParameters:
    """Tests for the personality keyword heuristic."""

    def test_profile_without_keywords_gets_baseline(self):
        """A profile with no free text should keep the baseline knobs."""
        params = derive_generation_parameters(make_profile("plain"))

        assert params == GenerationParameters(**BASELINE)

    def test_creative_keyword_raises_temperature(self):
        """One creative hit should nudge every creative knob once."""
        params = derive_generation_parameters(make_profile("poet", personality="creative"))

        assert params.temperature == pytest.approx(0.75)
        assert params.top_p == pytest.approx(0.91)
        assert params.top_k == 45
        assert params.presence_penalty == pytest.approx(0.11)
        assert params.repetition_penalty == pytest.approx(1.1)

    def test_analytical_keywords_lower_temperature(self):
        """Two analytical hits should apply the adjustment twice."""
        params = derive_generation_parameters(
            make_profile("logician", personality="A rigorous, logical thinker")
        )

        assert params.temperature == pytest.approx(0.6)
        assert params.top_p == pytest.approx(0.88)
        assert params.top_k == 30
        assert params.repetition_penalty == pytest.approx(1.14)

    def test_gentle_keywords_soften_penalties(self):
        """Gentle hits should lower frequency and repetition penalties."""
        params = derive_generation_parameters(make_profile("carer", tone="warm"))

        assert params.temperature == pytest.approx(0.72)
        assert params.frequency_penalty == pytest.approx(0.09)
        assert params.repetition_penalty == pytest.approx(1.09)

    def test_repeated_keyword_counts_once(self):
        """The same keyword appearing many times should count as one hit."""
        params = derive_generation_parameters(
            make_profile("poet", personality="creative creative creative")
        )

        assert params.temperature == pytest.approx(0.75)

    def test_keyword_matches_word_prefix(self):
        """A keyword should match words it prefixes."""
        params = derive_generation_parameters(make_profile("teller", preferences=("storytelling",)))

        assert params.temperature == pytest.approx(0.75)

    def test_all_free_text_fields_contribute(self):
        """Tone, communication style and preferences should all be scanned."""
        params = derive_generation_parameters(make_profile(
            "mixed",
            tone="precise",
            communication_style="methodical",
            preferences=("evidence",),
        ))

        assert params.temperature == pytest.approx(0.55)
        assert params.top_k == 25

    def test_values_clamped_to_bounds(self):
        """Many hits in one direction should stop at the interval edge."""
        params = derive_generation_parameters(make_profile(
            "dreamer",
            personality="creative imaginative poetic expressive artistic playful curious intuitive dreamy",
        ))

        assert params.temperature == BOUNDS["temperature"][1]
        assert params.top_p == pytest.approx(0.99)
        assert params.top_k == 85

    def test_low_bounds_respected(self):
        """Many analytical hits should not push temperature below its floor."""
        params = derive_generation_parameters(make_profile(
            "auditor",
            personality=(
                "analytical logical precise rigorous systematic critical methodical "
                "structured evidence skeptical objective data accurate careful"
            ),
        ))

        assert params.temperature == pytest.approx(BOUNDS["temperature"][0])
        assert params.top_k == BOUNDS["top_k"][0]
        assert params.repetition_penalty == BOUNDS["repetition_penalty"][1]

    def test_every_knob_within_its_interval(self, profiles):
        """Derived knobs should always lie within their bounds."""
        for profile in profiles:
            params = derive_generation_parameters(profile).model_dump()
            for knob, (low, high) in BOUNDS.items():
                assert low <= params[knob] <= high

    def test_equal_profiles_produce_equal_parameters(self):
        """The mapping should be deterministic."""
        first = make_profile("a", personality="A curious, careful and kind mind")
        second = make_profile("a", personality="A curious, careful and kind mind")

        assert derive_generation_parameters(first) == derive_generation_parameters(second)

    def test_top_k_is_integer(self):
        """top_k should be rounded to an integer."""
        params = derive_generation_parameters(make_profile("poet", personality="vivid"))

        assert isinstance(params.top_k, int)
