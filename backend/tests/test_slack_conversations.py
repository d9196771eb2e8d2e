import asyncio
from types import SimpleNamespace
from typing import Any, Optional

import pytest

from agents.errors import AlreadyRunning, RunTerminalError
from services import slack_conversations
from services.parameters import ParameterError


class _FakeParameters:
    def __init__(self, bot_token: Any = "xoxb-test") -> None:
        self.bot_token = bot_token

    async def get(self, name: str) -> str:
        assert name == "slackBotToken"
        if isinstance(self.bot_token, Exception):
            raise self.bot_token
        return self.bot_token


class _FakeSlackConnector:
    instances: list["_FakeSlackConnector"] = []

    def __init__(self, token: str) -> None:
        self.token = token
        self.posted: list[dict[str, Any]] = []
        _FakeSlackConnector.instances.append(self)

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: Optional[str] = None,
        blocks: Optional[list[dict[str, Any]]] = None,
        reply_broadcast: bool = False,
    ) -> dict[str, Any]:
        self.posted.append(
            {
                "channel": channel,
                "text": text,
                "thread_ts": thread_ts,
                "blocks": blocks,
                "reply_broadcast": reply_broadcast,
            }
        )
        return {"ok": True, "channel": channel, "ts": "999.1"}


class _FakeOrchestrator:
    def __init__(self, outcome: Any) -> None:
        self.outcome = outcome

    async def process_mention(self, event) -> list[str]:
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def fake_slack(monkeypatch):
    _FakeSlackConnector.instances.clear()
    monkeypatch.setattr(slack_conversations, "SlackConnector", _FakeSlackConnector)
    return _FakeSlackConnector.instances


def _use_orchestrator(monkeypatch, outcome: Any) -> None:
    async def _build(parameters, slack):
        return _FakeOrchestrator(outcome)

    monkeypatch.setattr(slack_conversations, "build_orchestrator", _build)


def test_replies_are_posted_in_thread(monkeypatch, fake_slack) -> None:
    _use_orchestrator(monkeypatch, ["All good.", "Two PRs are open."])
    event = {"text": "status?", "channel": "C1", "ts": "100.1"}

    result = asyncio.run(slack_conversations.process_slack_mention(event, parameters=_FakeParameters()))

    assert result == {"status": "success", "segments": 2}
    assert fake_slack[0].token == "xoxb-test"
    assert fake_slack[0].posted == [
        {
            "channel": "C1",
            "text": "All good.\nTwo PRs are open.",
            "thread_ts": "100.1",
            "blocks": [
                {"type": "section", "text": {"type": "mrkdwn", "text": "All good."}},
                {"type": "section", "text": {"type": "mrkdwn", "text": "Two PRs are open."}},
            ],
            "reply_broadcast": False,
        }
    ]


def test_thread_broadcast_reply_goes_to_thread_root(monkeypatch, fake_slack) -> None:
    _use_orchestrator(monkeypatch, ["done"])
    event = {"text": "go", "channel": "C1", "ts": "200.5", "threadTs": "200.1", "threadBroadcast": True}

    asyncio.run(slack_conversations.process_slack_mention(event, parameters=_FakeParameters()))

    posted = fake_slack[0].posted[0]
    assert posted["thread_ts"] == "200.1"
    assert posted["reply_broadcast"] is True


def test_empty_reply_posts_nothing(monkeypatch, fake_slack) -> None:
    _use_orchestrator(monkeypatch, [])
    event = {"text": "hi", "channel": "C1", "ts": "100.1"}

    result = asyncio.run(slack_conversations.process_slack_mention(event, parameters=_FakeParameters()))

    assert result == {"status": "success", "segments": 0}
    assert fake_slack[0].posted == []


def test_already_running_posts_nothing(monkeypatch, fake_slack) -> None:
    _use_orchestrator(monkeypatch, AlreadyRunning(SimpleNamespace(id="run_busy", status="in_progress")))
    event = {"text": "again?", "channel": "C1", "ts": "100.2", "threadTs": "100.1"}

    result = asyncio.run(slack_conversations.process_slack_mention(event, parameters=_FakeParameters()))

    assert result == {"status": "already_running", "run_id": "run_busy"}
    assert fake_slack[0].posted == []


def test_failure_posts_apology(monkeypatch, fake_slack) -> None:
    _use_orchestrator(monkeypatch, RunTerminalError("failed"))
    event = {"text": "status?", "channel": "C1", "ts": "100.1"}

    result = asyncio.run(slack_conversations.process_slack_mention(event, parameters=_FakeParameters()))

    assert result == {"status": "error", "error": "failed"}
    assert fake_slack[0].posted == [
        {
            "channel": "C1",
            "text": slack_conversations.APOLOGY_TEXT,
            "thread_ts": "100.1",
            "blocks": None,
            "reply_broadcast": False,
        }
    ]


def test_missing_bot_token_propagates(monkeypatch, fake_slack) -> None:
    _use_orchestrator(monkeypatch, ["unused"])
    parameters = _FakeParameters(ParameterError("slackBotToken:403:denied", 403, "denied"))

    with pytest.raises(ParameterError):
        asyncio.run(
            slack_conversations.process_slack_mention(
                {"text": "hi", "channel": "C1", "ts": "100.1"},
                parameters=parameters,
            )
        )
    assert fake_slack == []


def test_reply_blocks_use_slack_formatting() -> None:
    blocks = slack_conversations.build_reply_blocks(["**2 PRs** open, see [list](https://github.com/o/r/pulls)"])

    assert blocks == [
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": "*2 PRs* open, see <https://github.com/o/r/pulls|list>"},
        }
    ]
