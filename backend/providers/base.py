"""Base classes and models for LLM providers and reasoners."""

from abc import ABC, abstractmethod
from typing import Optional

from langchain_core.language_models.chat_models import BaseChatModel
from pydantic import BaseModel

from core.models import GenerationParameters


class ModelConfig(BaseModel):
    """Configuration for a model, parsed from model_list entry.

    Attributes:
        model_name: Friendly alias (e.g., "ollama-llama3")
        provider_type: Provider key (e.g., "ollama", "anthropic")
        model_id: Model identifier (e.g., "llama3")
        api_base: Base URL for the API endpoint
        api_key: API key (empty string for local servers)
    """

    model_config = {"frozen": True}

    model_name: str
    provider_type: str
    model_id: str
    api_base: str = ""
    api_key: str = ""


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    A provider turns a ModelConfig into a LangChain chat model.
    """

    @abstractmethod
    def get_llm(
        self,
        config: ModelConfig,
        parameters: Optional[GenerationParameters] = None,
    ) -> BaseChatModel:
        """Return a configured chat model for the given model.

        Args:
            config: Model configuration with provider details
            parameters: Optional sampling parameters; providers map the
                        knobs their API supports and ignore the rest

        Returns:
            A configured LangChain chat model
        """
        pass


class ReasonerResult(BaseModel):
    """Outcome of one Reasoner invocation.

    Attributes:
        content: Generated text (empty on failure)
        success: Whether the backend produced a usable answer
        error: Failure description when success is False
        duration_ms: Wall-clock duration of the call
    """

    content: str = ""
    success: bool = True
    error: Optional[str] = None
    duration_ms: float = 0.0


class Reasoner(ABC):
    """Text-completion capability used by agents and the facilitator.

    Implementations must report failure through ReasonerResult rather than
    raising; callers still guard against unexpected exceptions.
    """

    @abstractmethod
    async def execute(
        self,
        instruction: str,
        *,
        system_prompt: Optional[str] = None,
        parameters: Optional[GenerationParameters] = None,
    ) -> ReasonerResult:
        """Run one completion.

        Args:
            instruction: The user-turn instruction
            system_prompt: Optional system message
            parameters: Optional sampling parameters

        Returns:
            ReasonerResult with content or error
        """
        pass
