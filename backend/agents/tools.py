"""
Tool execution for assistant runs.

A run that stops in ``requires_action`` hands us a batch of function calls.
Each call is executed concurrently; whatever happens to one call (unknown
tool, bad arguments, GitHub error) only affects that call's output string.
The batch is answered as a whole once every call has resolved.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from agents.errors import ToolInvocationError, UnknownToolError
from agents.registry import ToolCategory, get_tool
from connectors.github import GitHubConnector
from services.parameters import ParameterStore

logger = logging.getLogger(__name__)

ToolExecutor = Callable[[str, Any], Awaitable[Any]]
"""``(tool_name, decoded_arguments) -> JSON-serializable result``"""


@dataclass(frozen=True)
class ToolCall:
    id: str
    tool_name: str
    raw_arguments: str


def extract_tool_calls(run: Any) -> list[ToolCall]:
    """Function calls requested by a run in ``requires_action`` (other tool types are ignored)."""
    required_action = getattr(run, "required_action", None)
    submit = getattr(required_action, "submit_tool_outputs", None)
    tool_calls = getattr(submit, "tool_calls", None) or []
    return [
        ToolCall(
            id=call.id,
            tool_name=call.function.name,
            raw_arguments=call.function.arguments or "",
        )
        for call in tool_calls
        if getattr(call, "type", None) == "function"
    ]


def _decode_arguments(raw_arguments: str) -> Any:
    if not raw_arguments.strip():
        return {}
    try:
        return json.loads(raw_arguments)
    except json.JSONDecodeError as e:
        raise ToolInvocationError(f"Invalid tool arguments: {e}") from e


async def run_tool_call(execute: ToolExecutor, call: ToolCall) -> dict[str, str]:
    """Run one call and return its ``{tool_call_id, output}`` pair. Never raises."""
    logger.info("[Tools] Function calling: %s %s", call.tool_name, call.raw_arguments)
    try:
        arguments = _decode_arguments(call.raw_arguments)
        result = await execute(call.tool_name, arguments)
        output = json.dumps(result, ensure_ascii=False, default=str)
        logger.info("[Tools] Result for %s (%s): %s", call.tool_name, call.id, output[:500])
    except Exception as e:
        output = str(e) or type(e).__name__
        logger.warning(
            "[Tools] Function calling error for %s (%s): %s",
            call.tool_name,
            call.id,
            output,
            exc_info=True,
        )
    return {"tool_call_id": call.id, "output": output}


async def dispatch_tool_calls(execute: ToolExecutor, calls: list[ToolCall]) -> list[dict[str, str]]:
    """Execute a batch of calls concurrently; one output per call, in call order."""
    return list(await asyncio.gather(*(run_tool_call(execute, call) for call in calls)))


class GitHubToolExecutor:
    """
    Executes registered GitHub tools.

    The GitHub App credentials are only fetched the first time a tool is
    actually called, so turns that never touch GitHub don't pay for it.
    """

    def __init__(self, parameters: ParameterStore) -> None:
        self._parameters = parameters
        self._connector: GitHubConnector | None = None
        self._lock = asyncio.Lock()

    async def _get_connector(self) -> GitHubConnector:
        async with self._lock:
            if self._connector is None:
                app_id = await self._parameters.get("githubAppId")
                private_key = await self._parameters.get("githubAppPrivateKey")
                self._connector = GitHubConnector(app_id=app_id, private_key=private_key)
            return self._connector

    async def __call__(self, tool_name: str, arguments: Any) -> Any:
        tool = get_tool(tool_name)
        if tool is None:
            raise UnknownToolError(tool_name)
        if not isinstance(arguments, dict):
            raise ToolInvocationError(f"Arguments for {tool_name} must be an object")

        if tool.category == ToolCategory.WRITE:
            logger.info("[Tools] Executing GitHub write tool %s on %s/%s", tool_name, arguments.get("owner"), arguments.get("repo"))

        connector = await self._get_connector()
        return await getattr(connector, tool_name)(**arguments)
