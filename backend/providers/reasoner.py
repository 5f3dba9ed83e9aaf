"""Reasoner backed by a LangChain chat model.

Wraps an LLMProvider + ModelConfig pair so agents can call a model
without knowing which backend serves it. Every failure, including
timeouts, is reported in the ReasonerResult instead of being raised.
"""

import asyncio
import logging
import time
from typing import Any, Optional

from langchain_core.language_models.chat_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from core.models import GenerationParameters

from .base import LLMProvider, ModelConfig, Reasoner, ReasonerResult

logger = logging.getLogger(__name__)


def message_text(content: Any) -> str:
    """Flatten LangChain message content into plain text.

    Some providers return a list of content blocks instead of a string.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return str(content or "")


class LangChainReasoner(Reasoner):
    """Reasoner that delegates to a provider's LangChain chat model."""

    def __init__(
        self,
        provider: LLMProvider,
        model_config: ModelConfig,
        timeout_seconds: Optional[float] = None,
    ):
        self.provider = provider
        self.model_config = model_config
        self.timeout_seconds = timeout_seconds
        self._clients: dict[Optional[GenerationParameters], BaseChatModel] = {}

    def _get_llm(self, parameters: Optional[GenerationParameters]) -> BaseChatModel:
        if parameters not in self._clients:
            self._clients[parameters] = self.provider.get_llm(self.model_config, parameters)
        return self._clients[parameters]

    async def execute(
        self,
        instruction: str,
        *,
        system_prompt: Optional[str] = None,
        parameters: Optional[GenerationParameters] = None,
    ) -> ReasonerResult:
        start = time.perf_counter()
        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=instruction))

        try:
            llm = self._get_llm(parameters)
            call = llm.ainvoke(messages)
            if self.timeout_seconds:
                response = await asyncio.wait_for(call, timeout=self.timeout_seconds)
            else:
                response = await call
        except asyncio.TimeoutError:
            duration = (time.perf_counter() - start) * 1000
            logger.warning(
                f"{self.model_config.model_name} timed out after {self.timeout_seconds}s"
            )
            return ReasonerResult(
                success=False,
                error=f"Timed out after {self.timeout_seconds}s",
                duration_ms=duration,
            )
        except Exception as e:
            duration = (time.perf_counter() - start) * 1000
            logger.warning(f"{self.model_config.model_name} call failed: {e}")
            return ReasonerResult(success=False, error=str(e), duration_ms=duration)

        duration = (time.perf_counter() - start) * 1000
        content = message_text(response.content)
        if not content.strip():
            return ReasonerResult(
                success=False,
                error="Empty response",
                duration_ms=duration,
            )

        logger.debug(
            f"{self.model_config.model_name} returned {len(content)} chars "
            f"in {duration:.0f}ms"
        )
        return ReasonerResult(content=content, success=True, duration_ms=duration)
