"""
Host-side driver that keeps at most one agent turn running.

Submitting a new message cancels the running turn and waits for it to wind
down before the next one starts, so two turns never interleave on the same
conversation.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from contextlib import aclosing
from typing import Awaitable, Callable, Optional, Union

from agent_bridge.agent import Agent
from agent_bridge.events import AgentEvent

__all__ = ["AgentSession", "EventCallback"]

logger = logging.getLogger(__name__)

EventCallback = Callable[[AgentEvent], Union[None, Awaitable[None]]]


class AgentSession:
    def __init__(self, agent: Agent) -> None:
        self.agent = agent
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    async def submit(self, text: str, on_event: EventCallback) -> asyncio.Task[None]:
        """Cancel any running turn, then start a new one for ``text``.

        ``on_event`` is called (and awaited, if it returns an awaitable) for
        every event of the new turn. The returned task finishes when the
        turn does.
        """
        await self.cancel()
        self._task = asyncio.create_task(self._drive(text, on_event))
        return self._task

    async def cancel(self) -> None:
        """Cancel the running turn, if any, and wait until it has stopped."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            # only swallow the cancellation we requested, not one aimed at us
            if current is not None and current.cancelling():
                raise
        logger.info("Cancelled running agent turn")

    async def wait(self) -> None:
        """Wait for the running turn to finish."""
        if self._task is not None:
            await asyncio.shield(self._task)

    async def _drive(self, text: str, on_event: EventCallback) -> None:
        async with aclosing(self.agent.run_turn(text)) as events:
            async for event in events:
                outcome = on_event(event)
                if inspect.isawaitable(outcome):
                    await outcome
