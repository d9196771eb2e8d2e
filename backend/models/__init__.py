"""Models package."""
from models.slack_event import SlackMentionEvent

__all__ = ["SlackMentionEvent"]
