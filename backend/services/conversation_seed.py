"""
Seed messages for a brand-new assistant thread.

When a mention arrives in a Slack thread we have no conversation for yet, the
thread's earlier replies (or, for a root-level mention, the last few channel
messages) are turned into plain ``user`` messages so the assistant starts
with the same context the people in the thread have.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol

from models.slack_event import SlackMentionEvent

logger = logging.getLogger(__name__)

THREAD_HISTORY_LIMIT: int = 10
CHANNEL_HISTORY_LIMIT: int = 3

MENTION_PATTERN = re.compile(r"<@[UW][0-9A-Z]+(?:\|[^>]*)?>")


class SlackHistorySource(Protocol):
    async def get_thread_replies(self, channel_id: str, thread_ts: str, limit: int = ...) -> list[dict[str, Any]]: ...

    async def get_channel_history(self, channel_id: str, limit: int = ...) -> list[dict[str, Any]]: ...


def strip_mentions(text: str) -> str:
    return MENTION_PATTERN.sub("", text).strip()


def _collect_text(value: Any) -> list[str]:
    """Pull ``text`` leaves out of nested Block Kit elements."""
    if isinstance(value, list):
        return [text for item in value for text in _collect_text(item)]
    if isinstance(value, dict):
        if isinstance(value.get("text"), str):
            return [value["text"]]
        return [text for key in ("elements", "text", "fields") for text in _collect_text(value.get(key))]
    return []


def _serialize_elements(value: Any) -> str:
    texts = _collect_text(value)
    if texts:
        return "".join(texts)
    return json.dumps(value, ensure_ascii=False)


def _attachment_text(attachment: dict[str, Any]) -> str:
    title: str = attachment.get("title") or ""
    text: str = attachment.get("text") or ""
    if title and text:
        return f"{title}\n{text}"
    return title or text


def slack_message_to_text(message: dict[str, Any]) -> str:
    """
    Flatten a Slack message to plain text.

    Block text comes first, then element/accessory content, then attachment
    title/body; the raw ``text`` field is only used when those yield nothing.
    Bot mention markup is stripped.
    """
    blocks: list[dict[str, Any]] = message.get("blocks") or []
    parts: list[str] = []
    for block in blocks:
        text_obj = block.get("text")
        if isinstance(text_obj, dict) and text_obj.get("text"):
            parts.append(text_obj["text"])
    for block in blocks:
        for key in ("elements", "fields", "accessory"):
            if block.get(key):
                parts.append(_serialize_elements(block[key]))
    for attachment in message.get("attachments") or []:
        text = _attachment_text(attachment)
        if text:
            parts.append(text)

    content = "\n".join(part for part in parts if part)
    if not content.strip():
        content = message.get("text") or ""
    return strip_mentions(content)


def to_seed_messages(messages: list[dict[str, Any]]) -> list[dict[str, str]]:
    seeds: list[dict[str, str]] = []
    for message in messages:
        content = slack_message_to_text(message)
        if content:
            seeds.append({"role": "user", "content": content})
    return seeds


async def make_initial_messages(
    event: SlackMentionEvent,
    slack: SlackHistorySource,
    thread_limit: int = THREAD_HISTORY_LIMIT,
    channel_limit: int = CHANNEL_HISTORY_LIMIT,
) -> list[dict[str, str]]:
    """
    Build the seed history for a new assistant thread.

    Args:
        event: The mention that is starting the conversation
        slack: Source of thread replies / channel history
        thread_limit: Max replies pulled when the mention is inside a thread
        channel_limit: Max channel messages pulled for a root-level mention

    Returns:
        ``{"role": "user", "content": ...}`` dicts, oldest-first. May be empty.
    """
    if event.thread_ts:
        logger.info(
            "[conversation_seed] Initializing with thread replies channel=%s thread=%s",
            event.channel,
            event.thread_ts,
        )
        # First page of the thread, starting at the root
        replies = await slack.get_thread_replies(event.channel, event.thread_ts, limit=thread_limit)
        history = [m for m in replies if m.get("ts") != event.ts]
    else:
        logger.info(
            "[conversation_seed] Initializing with channel messages channel=%s",
            event.channel,
        )
        recent = await slack.get_channel_history(event.channel, limit=channel_limit + 1)
        recent = [m for m in recent if m.get("ts") != event.ts][:channel_limit]
        history = list(reversed(recent))

    seeds = to_seed_messages(history)
    logger.info("[conversation_seed] Built %d seed message(s)", len(seeds))
    return seeds
