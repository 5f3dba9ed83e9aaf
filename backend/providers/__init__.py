"""LLM provider implementations and the Reasoner boundary."""

from .base import LLMProvider, ModelConfig, Reasoner, ReasonerResult
from .factory import build_reasoner, get_providers, parse_model_string
from .stub import StubReasoner

__all__ = [
    "LLMProvider",
    "ModelConfig",
    "Reasoner",
    "ReasonerResult",
    "StubReasoner",
    "build_reasoner",
    "get_providers",
    "parse_model_string",
]
