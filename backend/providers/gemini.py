"""Google Gemini LLM provider implementation.

Handles Google's Gemini models via the langchain-google-genai package.
Requires a valid API key for authentication.
"""

from typing import Optional

from langchain_google_genai import ChatGoogleGenerativeAI

from core.models import GenerationParameters

from .base import LLMProvider, ModelConfig


class GeminiProvider(LLMProvider):
    """Provider for Google Gemini models.

    Gemini supports temperature, top_p and top_k natively; the penalty
    knobs have no equivalent and are dropped.
    """

    def get_llm(
        self,
        config: ModelConfig,
        parameters: Optional[GenerationParameters] = None,
    ) -> ChatGoogleGenerativeAI:
        """Return a ChatGoogleGenerativeAI client configured for Gemini.

        Args:
            config: Model configuration with Google AI API details
            parameters: Optional sampling parameters

        Returns:
            A configured ChatGoogleGenerativeAI client

        Raises:
            ValueError: If api_key is not provided
        """
        if not config.api_key:
            raise ValueError(
                "Google AI API key is required. "
                "Set it in your config.yaml or via GOOGLE_API_KEY environment variable."
            )

        kwargs: dict = {"model": config.model_id, "google_api_key": config.api_key}
        if parameters is not None:
            kwargs["temperature"] = parameters.temperature
            kwargs["top_p"] = parameters.top_p
            kwargs["top_k"] = parameters.top_k
        return ChatGoogleGenerativeAI(**kwargs)
