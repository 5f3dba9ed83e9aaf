"""
Unified configuration models for Polyphony dialogue runs.

This module provides Pydantic models for run configuration that are used
by both the CLI (via YAML loading) and the service (via runtime construction).
"""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from core.models import Language, PersonalityProfile
from providers.base import ModelConfig


class DialogueSettings(BaseModel):
    """Settings for the dialogue process.

    Attributes:
        language: Output language for every prompt
        summarize_stages: Whether summary sub-stages run
        max_concurrency: Cap on simultaneous agent calls per stage (None = all)
        facilitator_model: model_name used for tie-breaks (None = no AI tie-break)
        summarizer_model: model_name used for stage summaries (None = digest only)
        log_dir: Directory for JSON interaction logs (None = memory only)
    """

    model_config = {"frozen": True}

    language: Language = Language.EN
    summarize_stages: bool = True
    max_concurrency: Optional[int] = Field(default=None, ge=1)
    facilitator_model: Optional[str] = None
    summarizer_model: Optional[str] = None
    log_dir: Optional[Path] = None


class AgentConfig(BaseModel):
    """One participating agent: its profile and the model that serves it."""

    model_config = {"frozen": True}

    profile: PersonalityProfile
    model_name: str = ""


class DialogueConfig(BaseModel):
    """Complete configuration for a Polyphony dialogue.

    Attributes:
        dialogue_settings: Settings for the dialogue process
        models: Dictionary mapping model_name to ModelConfig
        agents: Participating agents in speaking order
    """

    model_config = {"frozen": True}

    dialogue_settings: DialogueSettings = Field(default_factory=DialogueSettings)
    models: dict[str, ModelConfig] = Field(default_factory=dict)
    agents: list[AgentConfig] = Field(default_factory=list)

    @property
    def language(self) -> Language:
        """Convenience accessor for the output language."""
        return self.dialogue_settings.language

    @property
    def profiles(self) -> list[PersonalityProfile]:
        """Profiles of every participating agent, in order."""
        return [a.profile for a in self.agents]

    def model_for_agent(self, agent_id: str) -> Optional[ModelConfig]:
        """Look up the ModelConfig serving an agent, if any."""
        for agent in self.agents:
            if agent.profile.id == agent_id:
                return self.models.get(agent.model_name)
        return None
