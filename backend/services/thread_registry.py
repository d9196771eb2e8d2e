"""
Durable mapping from a Slack thread to an OpenAI conversation thread.

One entry per conversation key (the Slack thread root ``ts``). Entries are
written once, carry an absolute ``expires_at`` and are also stored with a
Redis TTL; lookups treat anything past ``expires_at`` as missing even if Redis
has not evicted it yet.
"""
from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import asdict, dataclass
from typing import Callable

import redis.asyncio as redis

from config import settings
from services.redis_client import get_redis, redis_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThreadRegistryEntry:
    conversation_key: str
    ai_conversation_id: str
    expires_at: int

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


class ThreadRegistry:
    """Append-only, TTL-bounded store of conversation key -> thread id."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = redis_client
        self.ttl_seconds: int = ttl_seconds or settings.THREAD_REGISTRY_TTL_SECONDS
        self._clock = clock

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    @staticmethod
    def build_key(conversation_key: str) -> str:
        return redis_key("thread", conversation_key)

    async def lookup(self, conversation_key: str) -> str | None:
        """Return the AI conversation id for a key, or None if absent or expired."""
        client = await self._get_redis()
        raw: str | None = await client.get(self.build_key(conversation_key))
        if not raw:
            return None

        try:
            entry = ThreadRegistryEntry(**json.loads(raw))
        except (TypeError, ValueError) as e:
            logger.warning(
                "[thread_registry] Ignoring malformed entry key=%s: %s",
                conversation_key,
                e,
            )
            return None

        if entry.is_expired(self._clock()):
            logger.info(
                "[thread_registry] Entry expired key=%s expires_at=%s",
                conversation_key,
                entry.expires_at,
            )
            return None

        logger.info(
            "[thread_registry] Found entry key=%s thread=%s",
            conversation_key,
            entry.ai_conversation_id,
        )
        return entry.ai_conversation_id

    async def create(
        self,
        conversation_key: str,
        ai_conversation_id: str,
        ttl_seconds: int | None = None,
    ) -> ThreadRegistryEntry:
        """Write a new entry. Raises on storage errors; see ``create_safe``."""
        ttl = ttl_seconds or self.ttl_seconds
        expires_at = math.ceil(self._clock() + ttl)
        entry = ThreadRegistryEntry(
            conversation_key=conversation_key,
            ai_conversation_id=ai_conversation_id,
            expires_at=expires_at,
        )
        client = await self._get_redis()
        await client.set(self.build_key(conversation_key), json.dumps(asdict(entry)), ex=ttl)
        logger.info(
            "[thread_registry] Stored entry key=%s thread=%s expires_at=%s",
            conversation_key,
            ai_conversation_id,
            expires_at,
        )
        return entry

    async def create_safe(
        self,
        conversation_key: str,
        ai_conversation_id: str,
        ttl_seconds: int | None = None,
    ) -> ThreadRegistryEntry | None:
        """
        Best-effort ``create``.

        A failed write is logged and never surfaced: the caller keeps using the
        fresh conversation for this turn, and the next mention simply starts a
        new one.
        """
        try:
            return await self.create(conversation_key, ai_conversation_id, ttl_seconds)
        except Exception as e:
            logger.error(
                "[thread_registry] Failed to store entry key=%s thread=%s: %s",
                conversation_key,
                ai_conversation_id,
                e,
            )
            return None
