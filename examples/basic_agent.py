from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path

from agent_bridge import (
    Agent,
    AgentSettings,
    Done,
    Error,
    ParameterDefinition,
    Provider,
    TextDelta,
    TextResponse,
    ToolCallResult,
    ToolCallStart,
    ToolDefinition,
    ToolFailure,
    ToolRegistry,
)

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)

LIST_FILES_TOOL = ToolDefinition(
    name="list_files",
    description="List the files in a directory, one per line",
    parameters={
        "path": ParameterDefinition("string", "Directory relative to the project root", required=True),
    },
)

READ_FILE_TOOL = ToolDefinition(
    name="read_file",
    description="Read a text file",
    parameters={
        "path": ParameterDefinition("string", "File path relative to the project root", required=True),
    },
)


def build_tools(root: Path) -> ToolRegistry:
    """Two read-only tools scoped to ``root``."""

    def list_files(args: dict) -> str | ToolFailure:
        target = (root / args["path"]).resolve()
        if not target.is_dir():
            return ToolFailure(f"Not a directory: {args['path']}")
        return "\n".join(sorted(p.name for p in target.iterdir()))

    def read_file(args: dict) -> str:
        return (root / args["path"]).read_text(encoding="utf-8")

    tools = ToolRegistry(timeout=10)
    tools.register(LIST_FILES_TOOL, list_files)
    tools.register(READ_FILE_TOOL, read_file)
    return tools


async def main(settings: AgentSettings, root: Path, prompt: str) -> None:
    agent = Agent.from_settings(settings, build_tools(root))

    async for event in agent.run_turn(prompt):
        if isinstance(event, TextDelta):
            print(event.text, end="", flush=True)
        elif isinstance(event, ToolCallStart):
            logger.info("→ %s(%s)", event.tool_name, event.arguments)
        elif isinstance(event, ToolCallResult):
            logger.info("← %s ok=%s (%d chars)", event.tool_name, event.success, len(event.result))
        elif isinstance(event, TextResponse) and not settings.stream_responses:
            print(event.content)
        elif isinstance(event, Error):
            logger.error(event.message)
        elif isinstance(event, Done):
            print()

    await agent.provider.aclose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--provider",
        choices=[p.value for p in Provider],
        default=Provider.ANTHROPIC.value,
    )
    parser.add_argument("--no-stream", action="store_true")
    parser.add_argument("--root", default=".")
    parser.add_argument("prompt", nargs="?", default="List the files in src and summarise what this project does.")
    args = parser.parse_args()

    settings = AgentSettings.from_env().copy(
        provider=args.provider, stream_responses=not args.no_stream
    )
    asyncio.run(main(settings, Path(args.root), args.prompt))
