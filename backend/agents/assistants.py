"""
OpenAI Assistants API access.

A narrow wrapper around ``AsyncOpenAI().beta`` exposing only the calls the
run loop needs. Keeping the surface small lets tests substitute a fake
backend without mimicking the SDK's nested resource objects.
"""
from __future__ import annotations

import logging
import re
from typing import Any, AsyncIterator, Optional

from openai import AsyncOpenAI, BadRequestError

from agents.errors import AppendConflict

logger = logging.getLogger(__name__)

# "Can't add messages to thread_abc while a run run_xyz is active."
ACTIVE_RUN_PATTERN = re.compile(r"run (?P<run_id>run_\w+) is active")


class AssistantsBackend:
    """Assistants, threads, messages and runs of one OpenAI account."""

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None) -> None:
        if client is None:
            if not api_key:
                raise ValueError("An OpenAI API key is required")
            client = AsyncOpenAI(api_key=api_key)
        self.client = client

    # ── Assistants ───────────────────────────────────────────────────────

    async def retrieve_assistant(self, assistant_id: str) -> Any:
        return await self.client.beta.assistants.retrieve(assistant_id)

    async def create_assistant(
        self,
        name: str,
        instructions: str,
        model: str,
        tools: list[dict[str, Any]],
    ) -> Any:
        return await self.client.beta.assistants.create(
            name=name,
            instructions=instructions,
            model=model,
            tools=tools,
        )

    # ── Threads & messages ───────────────────────────────────────────────

    async def retrieve_thread(self, thread_id: str) -> Any:
        return await self.client.beta.threads.retrieve(thread_id)

    async def create_thread(self, messages: list[dict[str, str]]) -> Any:
        return await self.client.beta.threads.create(messages=messages)

    async def create_message(self, thread_id: str, content: str) -> Any:
        """
        Append a user message.

        Raises:
            AppendConflict: a run is still active on the thread
        """
        try:
            return await self.client.beta.threads.messages.create(
                thread_id,
                role="user",
                content=content,
            )
        except BadRequestError as e:
            match = ACTIVE_RUN_PATTERN.search(str(e.message))
            if match:
                raise AppendConflict(match.group("run_id"), str(e.message)) from e
            raise

    async def iter_messages(self, thread_id: str) -> AsyncIterator[Any]:
        """Messages of a thread, newest first (pages are fetched lazily)."""
        async for message in self.client.beta.threads.messages.list(thread_id, order="desc"):
            yield message

    # ── Runs ─────────────────────────────────────────────────────────────

    async def create_run(self, thread_id: str, assistant_id: str) -> Any:
        return await self.client.beta.threads.runs.create(thread_id, assistant_id=assistant_id)

    async def retrieve_run(self, thread_id: str, run_id: str) -> Any:
        return await self.client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)

    async def list_runs(self, thread_id: str, limit: int = 20) -> list[Any]:
        """Most recent runs of a thread, newest first."""
        page = await self.client.beta.threads.runs.list(thread_id, limit=limit, order="desc")
        return list(page.data)

    async def cancel_run(self, thread_id: str, run_id: str) -> Any:
        logger.warning("[assistants] Cancelling run %s on thread %s", run_id, thread_id)
        return await self.client.beta.threads.runs.cancel(run_id, thread_id=thread_id)

    async def submit_tool_outputs(
        self,
        thread_id: str,
        run_id: str,
        tool_outputs: list[dict[str, str]],
    ) -> Any:
        return await self.client.beta.threads.runs.submit_tool_outputs(
            run_id,
            thread_id=thread_id,
            tool_outputs=tool_outputs,
        )
