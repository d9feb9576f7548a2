"""
LLM provider clients used by LLM-backed agents.
"""

from .base import LLMClient, LLMRequest
from .mock import MockLLMClient
from .openai_client import OpenAIChatClient

__all__ = [
    "LLMClient",
    "LLMRequest",
    "MockLLMClient",
    "OpenAIChatClient",
]
