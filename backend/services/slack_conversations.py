"""
Slack conversation service.

Entry point for one @mention: builds the clients for this invocation, runs
the assistant turn through the orchestrator and maps the outcome onto Slack:
replies on success, nothing when a turn is already running, a fixed apology
on any other failure.
"""
from __future__ import annotations

import logging
from typing import Any

from agents.assistants import AssistantsBackend
from agents.errors import AlreadyRunning
from agents.orchestrator import ChatOrchestrator
from agents.run_driver import RunDriver
from agents.tools import GitHubToolExecutor
from connectors.slack import SlackConnector, markdown_to_mrkdwn
from models.slack_event import SlackMentionEvent
from services.parameters import ParameterStore
from services.thread_registry import ThreadRegistry

logger = logging.getLogger(__name__)

APOLOGY_TEXT = "Sorry, something went wrong and I can't reply right now."


def build_reply_blocks(segments: list[str]) -> list[dict[str, Any]]:
    """One mrkdwn section per reply segment."""
    return [
        {"type": "section", "text": {"type": "mrkdwn", "text": markdown_to_mrkdwn(text)}}
        for text in segments
    ]


async def build_orchestrator(parameters: ParameterStore, slack: SlackConnector) -> ChatOrchestrator:
    backend = AssistantsBackend(api_key=await parameters.get("openAIApiKey"))
    return ChatOrchestrator(
        backend=backend,
        parameters=parameters,
        registry=ThreadRegistry(),
        slack=slack,
        run_driver=RunDriver(backend, GitHubToolExecutor(parameters)),
    )


async def post_replies(
    connector: SlackConnector,
    event: SlackMentionEvent,
    segments: list[str],
) -> dict[str, Any] | None:
    if not segments:
        logger.info("[slack_conversations] Assistant returned no content for %s", event.conversation_key)
        return None
    resp = await connector.post_message(
        channel=event.channel,
        text="\n".join(segments),
        thread_ts=event.reply_thread_ts,
        blocks=build_reply_blocks(segments),
        reply_broadcast=event.thread_broadcast,
    )
    logger.info("[slack_conversations] Posted reply channel=%s ts=%s", resp.get("channel"), resp.get("ts"))
    return resp


async def _post_apology(connector: SlackConnector, event: SlackMentionEvent) -> None:
    try:
        await connector.post_message(
            channel=event.channel,
            text=APOLOGY_TEXT,
            thread_ts=event.reply_thread_ts,
            reply_broadcast=event.thread_broadcast,
        )
    except Exception:
        logger.exception("[slack_conversations] Failed to post apology to %s", event.channel)


async def process_slack_mention(
    event: SlackMentionEvent | dict[str, Any],
    parameters: ParameterStore | None = None,
) -> dict[str, Any]:
    """
    Handle one @mention end to end.

    Args:
        event: The mention (or its serialized form from the task queue)
        parameters: Parameter store; a fresh one per invocation by default

    Returns:
        ``{"status": "success" | "already_running" | "error", ...}``

    Raises:
        ParameterError: the Slack bot token could not be fetched, so there is
            nowhere to report the failure
    """
    if not isinstance(event, SlackMentionEvent):
        event = SlackMentionEvent.model_validate(event)
    logger.debug("[slack_conversations] Processing mention %s", event.model_dump())

    parameters = parameters or ParameterStore()
    connector = SlackConnector(await parameters.get("slackBotToken"))

    try:
        orchestrator = await build_orchestrator(parameters, connector)
        segments = await orchestrator.process_mention(event)
        await post_replies(connector, event, segments)
    except AlreadyRunning as e:
        logger.warning(
            "[slack_conversations] It is already running. Double execution is not possible, "
            "so the process is terminated. run=%s",
            getattr(e.run, "id", None),
        )
        return {"status": "already_running", "run_id": getattr(e.run, "id", None)}
    except Exception as e:
        logger.exception("[slack_conversations] Mention handling failed: %s", e)
        await _post_apology(connector, event)
        return {"status": "error", "error": str(e)}

    return {"status": "success", "segments": len(segments)}
