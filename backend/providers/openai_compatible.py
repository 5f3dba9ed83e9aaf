"""Unified provider for all OpenAI-compatible APIs.

This module covers the providers (openai, grok, openrouter, ollama, vllm,
lm_studio) that all use LangChain's ChatOpenAI client with minor
configuration differences.

The only providers NOT handled here are:
- Anthropic: Uses ChatAnthropic (different client)
- Gemini: Uses ChatGoogleGenerativeAI (different client)
"""

from dataclasses import dataclass
from typing import Optional

from langchain_openai import ChatOpenAI

from core.models import GenerationParameters

from .base import LLMProvider, ModelConfig


@dataclass
class ProviderConfig:
    """Configuration for an OpenAI-compatible provider.

    Attributes:
        default_base_url: Default API endpoint URL (None uses OpenAI's default)
        api_key_required: Whether an API key must be provided
        api_key_env_var: Environment variable name for the API key (for error messages)
        default_headers: Custom HTTP headers to include in requests
        extended_sampling: Whether the server accepts top_k and
            repetition_penalty in the request body (local inference servers)
    """

    default_base_url: str | None = None
    api_key_required: bool = True
    api_key_env_var: str = ""
    default_headers: dict[str, str] | None = None
    extended_sampling: bool = False


# Provider configurations registry
PROVIDER_CONFIGS: dict[str, ProviderConfig] = {
    "openai": ProviderConfig(
        api_key_required=True,
        api_key_env_var="OPENAI_API_KEY",
    ),
    "grok": ProviderConfig(
        default_base_url="https://api.x.ai/v1",
        api_key_required=True,
        api_key_env_var="XAI_API_KEY",
    ),
    "openrouter": ProviderConfig(
        default_base_url="https://openrouter.ai/api/v1",
        api_key_required=True,
        api_key_env_var="OPENROUTER_API_KEY",
        default_headers={"X-Title": "Polyphony"},
    ),
    "ollama": ProviderConfig(
        default_base_url="http://localhost:11434/v1",
        api_key_required=False,
        extended_sampling=True,
    ),
    "vllm": ProviderConfig(api_key_required=False, extended_sampling=True),
    "lm_studio": ProviderConfig(
        default_base_url="http://localhost:1234/v1",
        api_key_required=False,
        extended_sampling=True,
    ),
}


class OpenAICompatibleProvider(LLMProvider):
    """Unified provider for all OpenAI-compatible APIs.

    All these providers use LangChain's ChatOpenAI client with different
    configuration options:
    - Local providers (ollama, vllm, lm_studio): No API key required, custom
      base URL, extended sampling knobs passed through extra_body
    - Cloud providers (openai, grok, openrouter): API key required
    - OpenRouter: Custom headers for attribution
    """

    def __init__(self, provider_type: str):
        """Initialize the provider.

        Args:
            provider_type: One of: openai, grok, openrouter, ollama, vllm, lm_studio

        Raises:
            KeyError: If provider_type is not recognized
        """
        if provider_type not in PROVIDER_CONFIGS:
            raise KeyError(
                f"Unknown provider type: {provider_type}. "
                f"Valid types: {list(PROVIDER_CONFIGS.keys())}"
            )
        self.provider_type = provider_type
        self.provider_config = PROVIDER_CONFIGS[provider_type]

    def sampling_kwargs(self, parameters: Optional[GenerationParameters]) -> dict:
        """Translate generation parameters into ChatOpenAI kwargs."""
        if parameters is None:
            return {}
        kwargs: dict = {
            "temperature": parameters.temperature,
            "top_p": parameters.top_p,
            "presence_penalty": parameters.presence_penalty,
            "frequency_penalty": parameters.frequency_penalty,
        }
        if self.provider_config.extended_sampling:
            kwargs["extra_body"] = {
                "top_k": parameters.top_k,
                "repetition_penalty": parameters.repetition_penalty,
            }
        return kwargs

    def get_llm(
        self,
        config: ModelConfig,
        parameters: Optional[GenerationParameters] = None,
    ) -> ChatOpenAI:
        """Return a ChatOpenAI client configured for this provider.

        Args:
            config: Model configuration with provider details
            parameters: Optional sampling parameters

        Returns:
            A configured ChatOpenAI client

        Raises:
            ValueError: If api_key is required but not provided
        """
        if self.provider_config.api_key_required and not config.api_key:
            raise ValueError(
                f"{self.provider_type.title()} API key is required. "
                f"Set it in your config.yaml or via {self.provider_config.api_key_env_var} environment variable."
            )

        kwargs: dict = {"model": config.model_id}

        # Set base URL (from config or provider default)
        if base_url := (config.api_base or self.provider_config.default_base_url):
            kwargs["base_url"] = base_url

        # Local providers accept any key
        kwargs["api_key"] = config.api_key or "not-needed"

        if self.provider_config.default_headers:
            kwargs["default_headers"] = self.provider_config.default_headers

        kwargs.update(self.sampling_kwargs(parameters))
        return ChatOpenAI(**kwargs)
