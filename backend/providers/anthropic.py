"""Anthropic Claude LLM provider implementation.

Handles Anthropic's Claude models via the langchain-anthropic package.
"""

from typing import Optional

from langchain_anthropic import ChatAnthropic

from core.models import GenerationParameters

from .base import LLMProvider, ModelConfig


class AnthropicProvider(LLMProvider):
    """Provider for Anthropic Claude models.

    The Messages API accepts temperature, top_p and top_k. It has no
    presence, frequency or repetition penalties, so those knobs are dropped.
    Current models reject requests that set both temperature and top_p, so
    only temperature and top_k are forwarded.
    """

    def get_llm(
        self,
        config: ModelConfig,
        parameters: Optional[GenerationParameters] = None,
    ) -> ChatAnthropic:
        """Return a ChatAnthropic client configured for Claude.

        Args:
            config: Model configuration with Anthropic API details
            parameters: Optional sampling parameters

        Returns:
            A configured ChatAnthropic client

        Raises:
            ValueError: If api_key is not provided
        """
        if not config.api_key:
            raise ValueError(
                "Anthropic API key is required. "
                "Set it in your config.yaml or via ANTHROPIC_API_KEY environment variable."
            )

        kwargs: dict = {"model": config.model_id, "api_key": config.api_key}
        if parameters is not None:
            kwargs["temperature"] = parameters.temperature
            kwargs["top_k"] = parameters.top_k
        return ChatAnthropic(**kwargs)
