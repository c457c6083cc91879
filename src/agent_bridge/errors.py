"""
Error taxonomy for agent-bridge and the classifier that turns noisy SDK and
transport exceptions into one concise, user-facing message.
"""
from __future__ import annotations

import json
import logging
from typing import Optional

import anthropic
import httpx
import openai

__all__ = [
    "AgentBridgeError",
    "TransportError",
    "DecodeError",
    "ToolError",
    "LoopLimitError",
    "classify_error",
    "error_code",
]


class AgentBridgeError(RuntimeError):
    """Base class for errors raised inside agent-bridge.

    Attributes:
        original_exc: The underlying exception, if any.
    """

    original_exc: Optional[BaseException]

    def __init__(self, message: str, original_exc: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.original_exc = original_exc
        if original_exc is not None:
            self.__cause__ = original_exc


class TransportError(AgentBridgeError):
    """Connection failure, timeout or non-2xx status from a backend."""


class DecodeError(AgentBridgeError):
    """A backend response could not be decoded as a whole."""


class ToolError(AgentBridgeError):
    """Unknown tool, bad arguments, tool failure or tool timeout."""


class LoopLimitError(AgentBridgeError):
    """The agent loop hit its iteration cap without a final answer."""

    def __init__(self, max_iterations: int) -> None:
        super().__init__(
            f"Agent reached maximum iterations ({max_iterations}). "
            "Stopping to prevent infinite loop."
        )
        self.max_iterations = max_iterations


_RATE_LIMIT_ERRORS: tuple[type[Exception], ...] = (
    openai.RateLimitError,
    anthropic.RateLimitError,
)

_STATUS_ERRORS: tuple[type[Exception], ...] = (
    openai.APIStatusError,
    anthropic.APIStatusError,
)

_CONN_ERRORS: tuple[type[Exception], ...] = (
    openai.APIConnectionError,
    anthropic.APIConnectionError,
    httpx.TransportError,
    TransportError,
    TimeoutError,
    ConnectionError,
)

_DECODE_ERRORS: tuple[type[Exception], ...] = (
    openai.APIResponseValidationError,
    anthropic.APIResponseValidationError,
    json.JSONDecodeError,
    DecodeError,
)


def error_code(exc: Exception) -> str:
    """HTTP status for status errors, otherwise the exception class name."""
    status = getattr(exc, "status_code", None)
    if status is not None:
        return str(status)
    return type(exc).__name__


def classify_error(exc: Exception, logger: Optional[logging.Logger] = None) -> str:
    """
    Classify an exception and return a concise error message.

    Args:
        exc: The caught exception
        logger: Logger for recording the error

    Returns:
        Formatted error message string
    """
    log = logger or logging.getLogger(__name__)

    if isinstance(exc, _RATE_LIMIT_ERRORS):
        msg = f"Rate limit error: {exc}"
    elif isinstance(exc, _STATUS_ERRORS):
        msg = f"API error ({error_code(exc)}): {exc}"
    elif isinstance(exc, _CONN_ERRORS):
        msg = f"Connection error: {exc}"
    elif isinstance(exc, _DECODE_ERRORS):
        msg = f"Decode error: {exc}"
    else:
        msg = f"{type(exc).__name__}: {exc}"
        # unknown errors get a stack trace
        log.exception(msg)
        return msg

    log.error(msg)
    return msg
