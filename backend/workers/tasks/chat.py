"""
Chat tasks for Celery workers.

One task per Slack @mention. The HTTP endpoint enqueues and returns
immediately; the task owns the whole assistant turn.
"""
from __future__ import annotations

import sys
from pathlib import Path

# Ensure backend directory is in Python path for Celery forked workers
_backend_dir = Path(__file__).resolve().parent.parent.parent
if str(_backend_dir) not in sys.path:
    sys.path.insert(0, str(_backend_dir))

import asyncio
import logging
from typing import Any

from workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def run_async(coro: Any) -> Any:
    """Run an async function in a sync context (for Celery tasks).

    Creates a fresh event loop and drops the shared Redis client afterwards,
    since its connections are bound to the loop that created them.
    """
    from services.redis_client import close_redis

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.run_until_complete(close_redis())
        loop.close()


@celery_app.task(bind=True, name="workers.tasks.chat.handle_slack_mention")
def handle_slack_mention(self: Any, event: dict[str, Any]) -> dict[str, Any]:
    """
    Celery task to answer a Slack @mention.

    Args:
        event: Serialized ``SlackMentionEvent``
    """
    from services.slack_conversations import process_slack_mention

    logger.info(
        "[chat_task] Handling mention channel=%s ts=%s thread_ts=%s",
        event.get("channel"),
        event.get("ts"),
        event.get("threadTs") or event.get("thread_ts"),
    )
    return run_async(process_slack_mention(event))
