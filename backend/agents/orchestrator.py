"""
Assistant orchestrator for Slack mentions.

Responsibilities:
- Resolve (or lazily create) the deployment's OpenAI assistant
- Map the Slack thread to an OpenAI thread, seeding new threads from Slack history
- Run the assistant on the user's message, answering GitHub tool calls
- Return the assistant's reply segments
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from openai import NotFoundError

from agents.assistants import AssistantsBackend
from agents.registry import get_tools_for_openai
from agents.replies import extract_reply_segments
from agents.run_driver import RunDriver
from models.slack_event import SlackMentionEvent
from services.conversation_seed import SlackHistorySource, make_initial_messages
from services.parameters import ParameterError, ParameterStore
from services.thread_registry import ThreadRegistry

logger = logging.getLogger(__name__)


class AssistantLookupStatus(Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


@dataclass
class AssistantLookup:
    status: AssistantLookupStatus
    assistant: Any = None
    error: Exception | None = None


class ChatOrchestrator:
    """Runs one assistant turn for one Slack mention."""

    def __init__(
        self,
        backend: AssistantsBackend,
        parameters: ParameterStore,
        registry: ThreadRegistry,
        slack: SlackHistorySource,
        run_driver: RunDriver,
    ) -> None:
        self.backend = backend
        self.parameters = parameters
        self.registry = registry
        self.slack = slack
        self.run_driver = run_driver

    async def try_get_assistant(self) -> AssistantLookup:
        """Look up the assistant whose id is stored in the parameter store."""
        try:
            assistant_id = await self.parameters.get("openAIAssistantId")
        except ParameterError as e:
            if e.status_code in (400, 404):
                return AssistantLookup(AssistantLookupStatus.NOT_FOUND, error=e)
            return AssistantLookup(AssistantLookupStatus.ERROR, error=e)

        if not assistant_id:
            return AssistantLookup(AssistantLookupStatus.NOT_FOUND)

        try:
            assistant = await self.backend.retrieve_assistant(assistant_id)
        except NotFoundError as e:
            return AssistantLookup(AssistantLookupStatus.NOT_FOUND, error=e)
        except Exception as e:
            return AssistantLookup(AssistantLookupStatus.ERROR, error=e)
        return AssistantLookup(AssistantLookupStatus.FOUND, assistant=assistant)

    async def create_assistant(self) -> Any:
        """Create the assistant from configured name/instructions/model and remember its id."""
        assistant = await self.backend.create_assistant(
            name=await self.parameters.get("assistantName"),
            instructions=await self.parameters.get("assistantInstruction"),
            model=await self.parameters.get("openAIModel"),
            tools=get_tools_for_openai(),
        )
        logger.info("[Orchestrator] Created assistant %s", assistant.id)
        await self.parameters.put("openAIAssistantId", assistant.id)
        return assistant

    async def resolve_assistant(self) -> Any:
        lookup = await self.try_get_assistant()
        if lookup.status == AssistantLookupStatus.FOUND:
            return lookup.assistant

        # TODO: stop creating on ERROR once transient lookup failures are retried;
        # today they also lead to a new (duplicate) assistant.
        if lookup.status == AssistantLookupStatus.ERROR:
            logger.warning(
                "[Orchestrator] Assistant lookup failed, creating a new one: %s",
                lookup.error,
            )
        else:
            logger.info("[Orchestrator] No assistant configured yet, creating one")
        return await self.create_assistant()

    async def resolve_thread(self, event: SlackMentionEvent) -> str:
        """Return the OpenAI thread id for the event's Slack thread, creating it if needed."""
        key = event.conversation_key
        thread_id = await self.registry.lookup(key)
        if thread_id:
            thread = await self.backend.retrieve_thread(thread_id)
            return thread.id

        logger.info("[Orchestrator] No thread for key=%s, creating a new one", key)
        initial_messages = await make_initial_messages(event, self.slack)
        thread = await self.backend.create_thread(initial_messages)
        await self.registry.create_safe(key, thread.id)
        return thread.id

    async def process_mention(self, event: SlackMentionEvent) -> list[str]:
        """
        Run one turn and return the reply segments.

        Raises:
            AlreadyRunning: another turn is still running on this thread
            RunTerminalError, NoActionableToolCalls, AppendConflict: the turn failed
        """
        assistant = await self.resolve_assistant()
        thread_id = await self.resolve_thread(event)
        await self.run_driver.execute_turn(thread_id, assistant.id, event.text)
        segments = await extract_reply_segments(self.backend.iter_messages(thread_id))
        logger.info(
            "[Orchestrator] Turn finished thread=%s segments=%d",
            thread_id,
            len(segments),
        )
        return segments
