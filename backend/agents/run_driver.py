"""
Drives one assistant run from creation to a terminal state.

States (OpenAI Assistants):
    queued -> in_progress -> completed
                          -> requires_action <-> in_progress
                          -> failed | cancelled | expired | incomplete

Only one non-terminal run may exist per thread. The guard is a
check-then-act against the run list, so a narrow race remains; when the
backend rejects the new message because a run slipped in, that run is
cancelled and the turn fails.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from agents.assistants import AssistantsBackend
from agents.errors import AlreadyRunning, AppendConflict, NoActionableToolCalls, RunTerminalError
from agents.tools import ToolExecutor, dispatch_tool_calls, extract_tool_calls
from config import settings

logger = logging.getLogger(__name__)

ACTIVE_RUN_STATUSES: frozenset[str] = frozenset({"queued", "in_progress", "requires_action", "cancelling"})
FAILED_RUN_STATUSES: frozenset[str] = frozenset({"failed", "cancelled", "expired", "incomplete"})


class RunDriver:
    """Single-flight run loop for one thread."""

    def __init__(
        self,
        backend: AssistantsBackend,
        execute_tool: ToolExecutor,
        poll_interval: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.backend = backend
        self.execute_tool = execute_tool
        self.poll_interval: float = (
            poll_interval if poll_interval is not None else settings.RUN_POLL_INTERVAL_SECONDS
        )
        self._sleep = sleep

    async def ensure_no_active_run(self, thread_id: str) -> None:
        """Raise ``AlreadyRunning`` if the thread has a run that hasn't finished."""
        for run in await self.backend.list_runs(thread_id):
            if run.status in ACTIVE_RUN_STATUSES:
                logger.warning(
                    "[run_driver] Thread %s already has active run %s (%s)",
                    thread_id,
                    run.id,
                    run.status,
                )
                raise AlreadyRunning(run)

    async def append_user_message(self, thread_id: str, text: str) -> Any:
        try:
            return await self.backend.create_message(thread_id, text)
        except AppendConflict as e:
            logger.warning(
                "[run_driver] Message rejected, run %s still active on thread %s; cancelling it",
                e.run_id,
                thread_id,
            )
            try:
                await self.backend.cancel_run(thread_id, e.run_id)
            except Exception:
                logger.exception("[run_driver] Failed to cancel stale run %s", e.run_id)
            raise

    async def wait_for_completion(self, thread_id: str, run_id: str) -> Any:
        """
        Poll a run until it completes, answering tool calls along the way.

        There is no timeout here; the worker's task time limit bounds the wait.

        Raises:
            NoActionableToolCalls: ``requires_action`` without function calls
            RunTerminalError: the run failed, was cancelled, expired or is incomplete
        """
        rounds = 0
        while True:
            await self._sleep(self.poll_interval)
            run = await self.backend.retrieve_run(thread_id, run_id)
            status: str = run.status

            if status == "completed":
                logger.info("[run_driver] Run %s completed after %d tool round(s)", run_id, rounds)
                return run

            if status == "requires_action":
                calls = extract_tool_calls(run)
                if not calls:
                    raise NoActionableToolCalls()
                rounds += 1
                logger.info(
                    "[run_driver] Run %s requires action: %d tool call(s) (round %d)",
                    run_id,
                    len(calls),
                    rounds,
                )
                outputs = await dispatch_tool_calls(self.execute_tool, calls)
                await self.backend.submit_tool_outputs(thread_id, run_id, outputs)
                continue

            if status in FAILED_RUN_STATUSES:
                logger.error(
                    "[run_driver] Run %s ended with status=%s last_error=%s",
                    run_id,
                    status,
                    getattr(run, "last_error", None),
                )
                raise RunTerminalError(status, run)

            logger.debug("[run_driver] Run %s status=%s", run_id, status)

    async def execute_turn(self, thread_id: str, assistant_id: str, text: str) -> Any:
        """Guard, append the user's message, start a run and wait for it to finish."""
        await self.ensure_no_active_run(thread_id)
        await self.append_user_message(thread_id, text)
        run = await self.backend.create_run(thread_id, assistant_id)
        logger.info("[run_driver] Started run %s on thread %s", run.id, thread_id)
        return await self.wait_for_completion(thread_id, run.id)
