"""
Shared test fixtures and utilities.

This module provides common test infrastructure used across all test modules.
"""

import pytest

from core.models import (
    MemoryScope,
    PersonalityProfile,
    Priority,
    ReasoningStyle,
    Session,
)
from core.pipeline import StagePipeline
from modules.dialogue.service import reset_dialogue_service
from providers.stub import StubReasoner
from shared.config import get_settings
from shared.database import reset_client_cache
from shared.dialogue_config import DialogueSettings


def make_profile(
    agent_id: str,
    name: str | None = None,
    style: ReasoningStyle = ReasoningStyle.LOGICAL,
    priority: Priority = Priority.DEPTH,
    **fields,
) -> PersonalityProfile:
    """
    Create a PersonalityProfile with sensible defaults.

    Args:
        agent_id: Agent identity
        name: Display name (defaults to the capitalized id)
        style: Reasoning style
        priority: Priority
        **fields: Any other profile field

    Returns:
        PersonalityProfile
    """
    return PersonalityProfile(
        id=agent_id,
        name=name or agent_id.capitalize(),
        style=style,
        priority=priority,
        **fields,
    )


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset cached singletons before and after each test."""
    reset_dialogue_service()
    reset_client_cache()
    get_settings.cache_clear()
    yield
    reset_dialogue_service()
    reset_client_cache()
    get_settings.cache_clear()


@pytest.fixture
def profiles() -> list[PersonalityProfile]:
    """Three agents with distinct styles and scopes."""
    return [
        make_profile(
            "logician",
            style=ReasoningStyle.LOGICAL,
            priority=Priority.DEPTH,
            memory_scope=MemoryScope.CROSS_SESSION,
            personality="A rigorous, logical thinker",
        ),
        make_profile(
            "critic",
            style=ReasoningStyle.CRITICAL,
            priority=Priority.PRECISION,
            memory_scope=MemoryScope.SESSION,
            personality="Questions everything, but kindly",
        ),
        make_profile(
            "poet",
            style=ReasoningStyle.INTUITIVE,
            priority=Priority.BREADTH,
            memory_scope=MemoryScope.LOCAL,
            personality="A creative and poetic dreamer",
        ),
    ]


@pytest.fixture
def session(profiles) -> Session:
    """A fresh session with the default agents."""
    return Session(title="Test session", agents=profiles)


@pytest.fixture
def stub_reasoner() -> StubReasoner:
    """Deterministic reasoner with no scripted replies."""
    return StubReasoner()


@pytest.fixture
def pipeline(stub_reasoner) -> StagePipeline:
    """Pipeline where every agent shares the stub reasoner."""
    return StagePipeline(default_reasoner=stub_reasoner, settings=DialogueSettings())
