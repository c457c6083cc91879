from __future__ import annotations

import argparse
import asyncio
import logging

from agent_bridge import AgentSettings, Message, Provider, create_llm
from agent_bridge.stream import DoneChunk, ErrorChunk, TextChunk

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


async def stream_once(settings: AgentSettings, prompt: str) -> None:
    """Print one streamed completion without the agent loop."""
    async with create_llm(settings) as llm:
        messages = [Message.system("Answer in one short paragraph."), Message.user(prompt)]
        async for chunk in llm.stream_chat(messages, max_tokens=300):
            if isinstance(chunk, TextChunk):
                print(chunk.text, end="", flush=True)
            elif isinstance(chunk, ErrorChunk):
                logger.error(chunk.message)
            elif isinstance(chunk, DoneChunk):
                print()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--provider",
        choices=[p.value for p in Provider],
        default=Provider.OPENAI.value,
    )
    parser.add_argument("--model", default=None)
    parser.add_argument("prompt", nargs="?", default="Why are server-sent events line oriented?")
    args = parser.parse_args()

    settings = AgentSettings.from_env().copy(provider=args.provider)
    if args.model:
        field = f"{Provider(args.provider).value}_model"
        settings = settings.copy(**{field: args.model})
    asyncio.run(stream_once(settings, args.prompt))
