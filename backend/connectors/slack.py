"""
Slack connector implementation.

Responsibilities:
- Authenticate with Slack using the bot token
- Post replies into threads
- Fetch thread replies and channel history used to seed conversations
"""

import logging
import re
from typing import Any, Optional

import httpx

SLACK_API_BASE = "https://slack.com/api"
logger = logging.getLogger(__name__)


def markdown_to_mrkdwn(text: str) -> str:
    """
    Convert standard Markdown to Slack mrkdwn format.

    Key differences:
    - Bold: **text** → *text*
    - Links: [text](url) → <url|text>
    - Headers: # Header → *Header*
    - Tables: Wrapped in code blocks (Slack doesn't support tables)
    """
    table_pattern = r'((?:^\|.+\|$\n?)+)'

    def wrap_table_in_code_block(match: re.Match[str]) -> str:
        table = match.group(1)
        lines = table.strip().split('\n')
        filtered_lines: list[str] = []
        for line in lines:
            # Skip separator rows like |---|---| or | --- | --- |
            if not re.match(r'^\|[\s\-:]+\|$', line.strip()):
                filtered_lines.append(line)
        return '```\n' + '\n'.join(filtered_lines) + '\n```'

    text = re.sub(table_pattern, wrap_table_in_code_block, text, flags=re.MULTILINE)
    text = re.sub(r'\*\*(.+?)\*\*', r'*\1*', text)
    text = re.sub(r'\[([^\]]+)\]\(([^)]+)\)', r'<\2|\1>', text)
    text = re.sub(r'^#{1,6}\s+(.+)$', r'*\1*', text, flags=re.MULTILINE)

    return text


class SlackConnector:
    """Thin Slack Web API client bound to one bot token."""

    def __init__(self, token: str) -> None:
        self.token = token

    def _get_headers(self) -> dict[str, str]:
        """Get authorization headers for Slack API."""
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json; charset=utf-8",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        json_data: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Make an authenticated request to Slack API."""
        url = f"{SLACK_API_BASE}/{endpoint}"

        async with httpx.AsyncClient() as client:
            if method == "GET":
                response = await client.get(
                    url, headers=self._get_headers(), params=params, timeout=30.0
                )
            else:
                response = await client.post(
                    url, headers=self._get_headers(), json=json_data, timeout=30.0
                )

            response.raise_for_status()
            data = response.json()

            if not data.get("ok"):
                raise ValueError(f"Slack API error: {data.get('error', 'Unknown')}")

            return data

    async def get_thread_replies(
        self,
        channel_id: str,
        thread_ts: str,
        limit: int = 10,
    ) -> list[dict[str, Any]]:
        """Get messages of a thread (root first, oldest-first), one page."""
        data = await self._make_request(
            "GET",
            "conversations.replies",
            params={"channel": channel_id, "ts": thread_ts, "limit": limit},
        )
        return data.get("messages", [])

    async def get_channel_history(
        self,
        channel_id: str,
        limit: int = 3,
    ) -> list[dict[str, Any]]:
        """Get the most recent channel messages (newest-first, as Slack returns them)."""
        data = await self._make_request(
            "GET",
            "conversations.history",
            params={"channel": channel_id, "limit": limit},
        )
        return data.get("messages", [])

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: Optional[str] = None,
        blocks: Optional[list[dict[str, Any]]] = None,
        reply_broadcast: bool = False,
    ) -> dict[str, Any]:
        """
        Post a message to a Slack channel.

        Args:
            channel: Channel ID (e.g., "C1234567890")
            text: Message text (used as fallback if blocks provided)
            thread_ts: Optional thread timestamp to reply in thread
            blocks: Optional Block Kit blocks for rich formatting
            reply_broadcast: Also show a thread reply in the channel

        Returns:
            Response with channel, ts (timestamp), and message details
        """
        payload: dict[str, Any] = {
            "channel": channel,
            "text": markdown_to_mrkdwn(text),
        }

        if thread_ts:
            payload["thread_ts"] = thread_ts
            payload["reply_broadcast"] = reply_broadcast

        if blocks:
            payload["blocks"] = blocks

        data = await self._make_request("POST", "chat.postMessage", json_data=payload)

        return {
            "ok": data.get("ok"),
            "channel": data.get("channel"),
            "ts": data.get("ts"),
            "message": data.get("message"),
        }

