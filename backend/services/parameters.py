"""
Parameter store client for secrets and deployment configuration.

Reads go through the AWS Parameters and Secrets extension HTTP endpoint
(``/systemsmanager/parameters/get``), which only supports reads. Values the
app itself needs to write back (the assistant id created on first use) are
kept as overrides in Redis and take precedence over the extension.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx
import redis.asyncio as redis

from config import get_parameter_name, settings
from services.redis_client import get_redis, redis_key

logger = logging.getLogger(__name__)


class ParameterError(Exception):
    """A parameter could not be fetched (missing, denied, or endpoint down)."""

    def __init__(self, message: str, status_code: int, body: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ParameterStore:
    """Fetch configuration values by logical name."""

    def __init__(
        self,
        endpoint: str | None = None,
        session_token: str | None = None,
        prefix: str | None = None,
        redis_client: redis.Redis | None = None,
    ) -> None:
        self.endpoint = (endpoint or settings.PARAMETER_STORE_ENDPOINT).rstrip("/")
        self.session_token = session_token if session_token is not None else settings.AWS_SESSION_TOKEN
        self.prefix = prefix if prefix is not None else settings.PARAMETER_NAME_PREFIX
        self._redis = redis_client
        self._cache: dict[str, str] = {}

    async def _get_redis(self) -> redis.Redis:
        if self._redis is None:
            self._redis = await get_redis()
        return self._redis

    def _override_key(self, full_name: str) -> str:
        return redis_key("param", full_name.lstrip("/"))

    async def get(self, name: str) -> str:
        """
        Get a parameter value.

        Args:
            name: Logical parameter name (e.g. ``"slackBotToken"``)

        Returns:
            The decrypted value, or ``""`` when the parameter has no value

        Raises:
            ParameterError: the endpoint rejected the request
        """
        if name in self._cache:
            return self._cache[name]

        full_name = get_parameter_name(name, self.prefix)
        override = await self._get_override(full_name)
        if override is not None:
            self._cache[name] = override
            return override

        async with httpx.AsyncClient(timeout=10.0) as client:
            resp: httpx.Response = await client.get(
                f"{self.endpoint}/systemsmanager/parameters/get",
                params={"name": full_name, "withDecryption": "true"},
                headers={"X-Aws-Parameters-Secrets-Token": self.session_token or ""},
            )
        if resp.is_success:
            data: dict[str, Any] = resp.json()
            value: str = (data.get("Parameter") or {}).get("Value") or ""
            self._cache[name] = value
            return value

        body = resp.text
        raise ParameterError(f"{name}:{resp.status_code}:{body}", resp.status_code, body)

    async def put(self, name: str, value: str) -> None:
        """Persist a parameter value, overwriting any previous one."""
        full_name = get_parameter_name(name, self.prefix)
        client = await self._get_redis()
        await client.set(self._override_key(full_name), value)
        self._cache[name] = value
        logger.info("[parameters] Stored parameter %s", full_name)

    async def _get_override(self, full_name: str) -> str | None:
        try:
            client = await self._get_redis()
            return await client.get(self._override_key(full_name))
        except redis.RedisError as e:
            logger.warning("[parameters] Redis error reading override for %s: %s", full_name, e)
            return None
