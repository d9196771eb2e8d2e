"""
Slack Events API webhook endpoint.

Handles incoming events from Slack:
- URL verification challenge (when setting up the webhook)
- app_mention events (@mentions in channels and threads)

Slack expects a response within 3 seconds, so a mention is only parsed,
deduplicated and enqueued here; the assistant turn runs in a Celery worker.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from models.slack_event import SlackMentionEvent
from services.redis_client import get_redis, redis_key
from workers.tasks.chat import handle_slack_mention

logger = logging.getLogger(__name__)

router = APIRouter()

MENTION_MARKUP = re.compile(r"<@U[0-9A-Z]+>")


async def is_duplicate_event(event_id: str) -> bool:
    """
    Check if we've already processed this event (deduplication).

    Slack retries events it did not get a timely 200 for. Event IDs are kept
    in Redis for an hour.

    Args:
        event_id: Unique event identifier from Slack

    Returns:
        True if event was already processed
    """
    try:
        redis_client = await get_redis()
        was_set = await redis_client.set(redis_key("slack_events", event_id), "1", nx=True, ex=3600)
        return not was_set
    except Exception as e:
        logger.error("[slack_events] Redis error during deduplication: %s", e)
        # If Redis fails, process the event anyway (better to duplicate than miss)
        return False


def build_mention_event(event: dict[str, Any]) -> SlackMentionEvent:
    """Turn an ``app_mention`` payload into the worker's event, mention markup removed."""
    return SlackMentionEvent(
        text=MENTION_MARKUP.sub("", event.get("text", "")),
        channel=event.get("channel", ""),
        ts=event.get("ts", ""),
        thread_ts=event.get("thread_ts") or None,
        thread_broadcast=event.get("subtype") == "thread_broadcast",
    )


def enqueue_mention(mention: SlackMentionEvent) -> None:
    handle_slack_mention.delay(mention.model_dump(by_alias=True))


async def process_event_callback(payload: dict[str, Any]) -> bool:
    """Dedup and enqueue an event callback. Returns True if a task was enqueued."""
    event: dict[str, Any] = payload.get("event") or {}
    event_id: str = payload.get("event_id", "")

    if event.get("type") != "app_mention":
        logger.debug("[slack_events] Ignoring event type %s", event.get("type"))
        return False

    if event_id and await is_duplicate_event(event_id):
        logger.info("[slack_events] Skipping duplicate event: %s", event_id)
        return False

    mention = build_mention_event(event)
    logger.info(
        "[slack_events] Enqueuing @mention channel=%s ts=%s thread_ts=%s: %s",
        mention.channel,
        mention.ts,
        mention.thread_ts,
        mention.text[:50],
    )
    enqueue_mention(mention)
    return True


@router.post("/events")
async def handle_slack_events(request: Request) -> Any:
    """
    Handle incoming Slack Events API requests.

    1. URL verification challenge (returns {"challenge": ...} as JSON)
    2. Event callbacks (enqueued for the chat worker)
    """
    body = await request.body()
    try:
        payload: dict[str, Any] = json.loads(body.decode("utf-8") or "{}")
    except Exception as e:
        logger.error("[slack_events] Failed to parse JSON: %s", e)
        raise HTTPException(status_code=400, detail="Invalid JSON")

    event_type = payload.get("type")

    if event_type == "url_verification":
        logger.info("[slack_events] URL verification challenge received")
        return {"challenge": payload.get("challenge", "")}

    if event_type == "event_callback":
        await process_event_callback(payload)

    return {"ok": True}
