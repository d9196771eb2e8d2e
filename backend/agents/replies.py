"""Collect the assistant's latest turn from a thread."""
from __future__ import annotations

import logging
from typing import Any, AsyncIterator

logger = logging.getLogger(__name__)

IMAGE_NOT_SUPPORTED_TEXT = "An image file was returned, but images are not supported yet."


async def extract_reply_segments(messages: AsyncIterator[Any]) -> list[str]:
    """
    Walk thread messages newest-first and gather assistant content.

    Stops at the first user message. Text content contributes its value;
    image content contributes a placeholder. Order is exactly the walk order.
    """
    segments: list[str] = []
    async for message in messages:
        if message.role == "user":
            break
        for content in message.content:
            if content.type == "text":
                segments.append(content.text.value)
            elif content.type in ("image_file", "image_url"):
                logger.info("[replies] Unsupported %s content in message %s", content.type, message.id)
                segments.append(IMAGE_NOT_SUPPORTED_TEXT)
    return segments
