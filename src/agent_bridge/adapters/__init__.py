"""Pure transformation adapters for the supported wire protocols."""

from .anthropic import AnthropicRequestAdapter, AnthropicStreamDecoder
from .openai import OpenAIRequestAdapter, OpenAIStreamDecoder

__all__ = [
    "AnthropicRequestAdapter",
    "AnthropicStreamDecoder",
    "OpenAIRequestAdapter",
    "OpenAIStreamDecoder",
]
