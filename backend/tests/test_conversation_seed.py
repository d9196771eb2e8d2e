import asyncio

from models.slack_event import SlackMentionEvent
from services import conversation_seed


class _FakeSlackHistory:
    def __init__(self, replies=None, history=None) -> None:
        self.replies = replies or []
        self.history = history or []
        self.calls: list[tuple[str, dict]] = []

    async def get_thread_replies(self, channel_id: str, thread_ts: str, limit: int = 10):
        self.calls.append(("replies", {"channel": channel_id, "ts": thread_ts, "limit": limit}))
        return self.replies[:limit]

    async def get_channel_history(self, channel_id: str, limit: int = 3):
        self.calls.append(("history", {"channel": channel_id, "limit": limit}))
        return self.history[:limit]


def test_thread_mention_seeds_from_replies_excluding_trigger() -> None:
    slack = _FakeSlackHistory(
        replies=[
            {"ts": "100.1", "text": "root question"},
            {"ts": "100.2", "text": "<@U01BOT> some context"},
            {"ts": "100.3", "text": ""},
            {"ts": "100.4", "text": "<@U01BOT> what now?"},
        ]
    )
    event = SlackMentionEvent(text="what now?", channel="C1", ts="100.4", thread_ts="100.1")

    seeds = asyncio.run(conversation_seed.make_initial_messages(event, slack))

    assert seeds == [
        {"role": "user", "content": "root question"},
        {"role": "user", "content": "some context"},
    ]
    assert slack.calls[0][0] == "replies"
    assert slack.calls[0][1]["ts"] == "100.1"


def test_thread_mention_keeps_at_most_ten_prior_replies() -> None:
    replies = [{"ts": f"100.{i}", "text": f"message {i}"} for i in range(1, 12)]
    slack = _FakeSlackHistory(replies=replies)
    event = SlackMentionEvent(text="hi", channel="C1", ts="100.11", thread_ts="100.1")

    seeds = asyncio.run(conversation_seed.make_initial_messages(event, slack))

    assert len(seeds) == 10
    assert seeds[0]["content"] == "message 1"
    assert seeds[-1]["content"] == "message 10"


def test_long_thread_seeds_from_the_root_page() -> None:
    replies = [{"ts": f"100.{i:02d}", "text": f"message {i}"} for i in range(1, 21)]
    slack = _FakeSlackHistory(replies=replies)
    event = SlackMentionEvent(text="hi", channel="C1", ts="100.20", thread_ts="100.01")

    seeds = asyncio.run(conversation_seed.make_initial_messages(event, slack))

    assert [s["content"] for s in seeds] == [f"message {i}" for i in range(1, 11)]
    assert slack.calls[0][1]["limit"] == 10


def test_root_mention_seeds_from_recent_channel_messages_oldest_first() -> None:
    slack = _FakeSlackHistory(
        history=[
            {"ts": "100.1", "text": "<@U01BOT> status?"},
            {"ts": "99.3", "text": "third"},
            {"ts": "99.2", "text": "second"},
            {"ts": "99.1", "text": "first"},
        ]
    )
    event = SlackMentionEvent(text="status?", channel="C1", ts="100.1")

    seeds = asyncio.run(conversation_seed.make_initial_messages(event, slack))

    assert [s["content"] for s in seeds] == ["first", "second", "third"]
    assert slack.calls[0][0] == "history"


def test_empty_history_gives_empty_seed() -> None:
    event = SlackMentionEvent(text="status?", channel="C1", ts="100.1")

    assert asyncio.run(conversation_seed.make_initial_messages(event, _FakeSlackHistory())) == []


def test_message_text_prefers_blocks_then_elements_then_attachments() -> None:
    message = {
        "text": "fallback text",
        "blocks": [
            {
                "type": "section",
                "text": {"type": "mrkdwn", "text": "*Deploy* finished"},
                "accessory": {"type": "button", "text": {"type": "plain_text", "text": "Open"}},
            },
        ],
        "attachments": [
            {"title": "Build #42", "text": "All checks passed"},
            {"title": "", "text": "details"},
        ],
    }

    text = conversation_seed.slack_message_to_text(message)

    assert text == "*Deploy* finished\nOpen\nBuild #42\nAll checks passed\ndetails"


def test_message_text_flattens_rich_text_and_strips_mentions() -> None:
    message = {
        "text": "<@U01BOT> look at this",
        "blocks": [
            {
                "type": "rich_text",
                "elements": [
                    {
                        "type": "rich_text_section",
                        "elements": [
                            {"type": "user", "user_id": "U01BOT"},
                            {"type": "text", "text": " look at "},
                            {"type": "text", "text": "this"},
                        ],
                    }
                ],
            }
        ],
    }

    assert conversation_seed.slack_message_to_text(message) == "look at this"


def test_message_text_falls_back_to_raw_text() -> None:
    message = {"text": "<@U01BOT|bot> plain", "blocks": [{"type": "divider"}]}

    assert conversation_seed.slack_message_to_text(message) == "plain"
