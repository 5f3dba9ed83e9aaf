"""Factory functions for creating LLM providers and reasoners."""

from typing import Optional

from .anthropic import AnthropicProvider
from .base import LLMProvider, ModelConfig, Reasoner
from .gemini import GeminiProvider
from .openai_compatible import PROVIDER_CONFIGS, OpenAICompatibleProvider
from .reasoner import LangChainReasoner


def get_providers() -> dict[str, LLMProvider]:
    """Get one instance of each provider type.

    Returns:
        Dictionary mapping provider type names to provider instances.
        Keys are the OpenAI-compatible types plus "anthropic" and "gemini".
    """
    providers: dict[str, LLMProvider] = {
        name: OpenAICompatibleProvider(name) for name in PROVIDER_CONFIGS
    }
    providers["anthropic"] = AnthropicProvider()
    providers["gemini"] = GeminiProvider()
    return providers


def parse_model_string(model: str) -> tuple[str, str]:
    """Parse 'provider/model_id' into (provider_type, model_id).

    Args:
        model: Model string in format "provider/model_id"
               e.g., "ollama/llama3", "anthropic/claude-sonnet-4-20250514"

    Returns:
        Tuple of (provider_type, model_id)

    Raises:
        ValueError: If model string doesn't contain a '/'
    """
    if "/" not in model:
        raise ValueError(
            f"Invalid model string '{model}'. "
            "Expected format: 'provider/model_id' (e.g., 'ollama/llama3')"
        )
    provider_type, model_id = model.split("/", 1)
    return provider_type, model_id


def build_reasoner(
    model_config: ModelConfig,
    providers: Optional[dict[str, LLMProvider]] = None,
    timeout_seconds: Optional[float] = None,
) -> Reasoner:
    """Create a Reasoner for a configured model.

    Args:
        model_config: The model to call
        providers: Provider instances by type (defaults to get_providers())
        timeout_seconds: Optional per-call timeout

    Returns:
        A LangChainReasoner bound to the model

    Raises:
        KeyError: If the model's provider type is unknown
    """
    providers = providers or get_providers()
    if model_config.provider_type not in providers:
        raise KeyError(
            f"Unknown provider type: {model_config.provider_type}. "
            f"Valid types: {sorted(providers)}"
        )
    return LangChainReasoner(
        providers[model_config.provider_type],
        model_config,
        timeout_seconds=timeout_seconds,
    )
