from .anthropic import AnthropicLLM
from .base import DEFAULT_TIMEOUT, BaseAsyncLLM, RequestAdapter
from .openai import OpenAILLM

__all__ = [
    "AnthropicLLM",
    "BaseAsyncLLM",
    "DEFAULT_TIMEOUT",
    "OpenAILLM",
    "RequestAdapter",
]
