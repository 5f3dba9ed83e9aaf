"""Configuration loading and parsing for LiteLLM-style YAML configs.

A run configuration has three sections:

    dialogue_settings:
      language: en
      summarize_stages: true
      max_concurrency: 4
      facilitator_model: local-qwen
      summarizer_model: local-qwen
      log_dir: logs

    model_list:
      - model_name: local-qwen
        litellm_params:
          provider: ollama
          model: qwen3:8b
          api_base: http://localhost:11434/v1

    agents:
      - id: analyst
        name: Analyst
        style: analytical
        priority: precision
        model_name: local-qwen
"""

import logging
from pathlib import Path
from typing import Optional, Union

import yaml
from pydantic import ValidationError as PydanticValidationError

from providers.base import ModelConfig, Reasoner
from providers.factory import build_reasoner, get_providers
from providers.stub import StubReasoner
from shared.config import Settings
from shared.dialogue_config import AgentConfig, DialogueConfig, DialogueSettings
from shared.exceptions import ConfigurationError

from .interaction_log import InteractionLog
from .models import PersonalityProfile
from .pipeline import StagePipeline

logger = logging.getLogger(__name__)

PROVIDER_NAMES = "openai, grok, openrouter, ollama, vllm, lm_studio, anthropic, gemini"


def get_api_key_for_provider(provider: str, settings: Settings) -> str:
    """Get the environment API key for a provider (empty for local servers)."""
    api_key_map = {
        "anthropic": settings.anthropic_api_key,
        "openai": settings.openai_api_key,
        "gemini": settings.google_api_key,
        "grok": settings.xai_api_key,
        "openrouter": settings.openrouter_api_key,
    }
    return api_key_map.get(provider, "")


def _parse_model_list(model_list: list[dict]) -> dict[str, ModelConfig]:
    """Parse model_list from YAML into ModelConfig dict.

    Args:
        model_list: List of model entries from YAML

    Returns:
        Dictionary mapping model_name to ModelConfig

    Raises:
        ConfigurationError: If a model entry is missing the 'provider' field
    """
    models = {}
    for entry in model_list:
        model_name = entry["model_name"]
        params = entry.get("litellm_params", {})

        provider_type = params.get("provider")
        if not provider_type:
            raise ConfigurationError(
                f"Model '{model_name}' is missing required 'provider' field in litellm_params. "
                f"Valid providers: {PROVIDER_NAMES}",
                details={"model_name": model_name},
            )

        models[model_name] = ModelConfig(
            model_name=model_name,
            provider_type=provider_type,
            model_id=params.get("model", ""),
            api_base=params.get("api_base", ""),
            api_key=params.get("api_key", ""),
        )
    return models


def _parse_agents(agent_list: list[dict], models: dict[str, ModelConfig]) -> list[AgentConfig]:
    """Parse agents from YAML into AgentConfig list.

    Every field except model_name belongs to the PersonalityProfile.

    Raises:
        ConfigurationError: If a profile is invalid, an id repeats or a
            model_name is not in model_list
    """
    agents = []
    seen: set[str] = set()
    for entry in agent_list:
        fields = dict(entry)
        model_name = fields.pop("model_name", "")
        try:
            profile = PersonalityProfile.model_validate(fields)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid agent entry {entry.get('id', '?')!r}: {e}",
                details={"agent": entry.get("id")},
            ) from e

        if profile.id in seen:
            raise ConfigurationError(f"Duplicate agent id: {profile.id}")
        if model_name and model_name not in models:
            raise ConfigurationError(
                f"Agent '{profile.id}' references unknown model '{model_name}'",
                details={"agent": profile.id, "model_name": model_name},
            )
        seen.add(profile.id)
        agents.append(AgentConfig(profile=profile, model_name=model_name))
    return agents


def parse_config(data: dict, config_dir: Optional[Path] = None) -> DialogueConfig:
    """Build a DialogueConfig from already-parsed YAML data."""
    data = data or {}
    settings_data = dict(data.get("dialogue_settings") or {})
    log_dir = settings_data.get("log_dir")
    if log_dir and config_dir is not None and not Path(log_dir).is_absolute():
        settings_data["log_dir"] = config_dir / log_dir
    try:
        dialogue_settings = DialogueSettings.model_validate(settings_data)
    except PydanticValidationError as e:
        raise ConfigurationError(f"Invalid dialogue_settings: {e}") from e

    models = _parse_model_list(data.get("model_list") or [])
    agents = _parse_agents(data.get("agents") or [], models)

    for key in ("facilitator_model", "summarizer_model"):
        name = getattr(dialogue_settings, key)
        if name and name not in models:
            raise ConfigurationError(f"{key} '{name}' is not in model_list")

    return DialogueConfig(
        dialogue_settings=dialogue_settings,
        models=models,
        agents=agents,
    )


def load_config(config_path: Union[str, Path]) -> DialogueConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML config file

    Returns:
        Parsed DialogueConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
        ConfigurationError: If the contents are invalid
    """
    config_path = Path(config_path)
    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return parse_config(data, config_path.parent)


def build_pipeline(
    config: DialogueConfig,
    settings: Optional[Settings] = None,
    stub: bool = False,
) -> StagePipeline:
    """Wire Reasoners for every configured agent into a StagePipeline.

    Args:
        config: Run configuration
        settings: Environment settings (timeouts, interaction log dir)
        stub: Use a StubReasoner everywhere instead of real models

    Returns:
        A pipeline ready to run sessions using the configured agents

    Raises:
        ConfigurationError: If an agent has no usable model
    """
    timeout = settings.reasoner_timeout_seconds if settings else None
    dialogue_settings = config.dialogue_settings
    if settings and settings.interaction_log_dir and dialogue_settings.log_dir is None:
        dialogue_settings = dialogue_settings.model_copy(
            update={"log_dir": settings.interaction_log_dir}
        )

    if stub:
        logger.info("Using stub reasoners; no model will be called")
        return StagePipeline(
            default_reasoner=StubReasoner(),
            settings=dialogue_settings,
            interaction_log=InteractionLog(dialogue_settings.log_dir),
        )

    providers = get_providers()
    cache: dict[str, Reasoner] = {}

    def reasoner_for(model_name: Optional[str]) -> Optional[Reasoner]:
        if not model_name:
            return None
        if model_name not in cache:
            model_config = config.models[model_name]
            if not model_config.api_key and settings is not None:
                api_key = get_api_key_for_provider(model_config.provider_type, settings)
                if api_key:
                    model_config = model_config.model_copy(update={"api_key": api_key})
            try:
                cache[model_name] = build_reasoner(
                    model_config,
                    providers,
                    timeout_seconds=timeout,
                )
            except KeyError as e:
                raise ConfigurationError(str(e), details={"model_name": model_name}) from e
        return cache[model_name]

    reasoners = {}
    for agent in config.agents:
        reasoner = reasoner_for(agent.model_name)
        if reasoner is None:
            raise ConfigurationError(
                f"Agent '{agent.profile.id}' has no model_name",
                details={"agent": agent.profile.id},
            )
        reasoners[agent.profile.id] = reasoner

    return StagePipeline(
        reasoners=reasoners,
        summarizer_reasoner=reasoner_for(dialogue_settings.summarizer_model),
        facilitator_reasoner=reasoner_for(dialogue_settings.facilitator_model),
        settings=dialogue_settings,
        interaction_log=InteractionLog(dialogue_settings.log_dir),
    )
