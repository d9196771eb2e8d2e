"""
Slack mention event handed from the HTTP endpoint to the chat worker.

The payload is JSON-serialized through Celery, so the field aliases mirror
the camelCase keys the worker has always accepted (``threadTs``,
``threadBroadcast``); snake_case works too.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class SlackMentionEvent(BaseModel):
    """A single @mention of the bot, mention markup already removed."""

    model_config = ConfigDict(populate_by_name=True)

    text: str
    channel: str
    ts: str
    thread_ts: Optional[str] = Field(default=None, alias="threadTs")
    thread_broadcast: bool = Field(default=False, alias="threadBroadcast")

    @property
    def conversation_key(self) -> str:
        """Thread root timestamp; the message itself when not in a thread."""
        return self.thread_ts or self.ts

    @property
    def reply_thread_ts(self) -> str:
        return self.thread_ts or self.ts
