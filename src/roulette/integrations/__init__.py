"""External integrations for Roulette (Slack notifications, completion stats)."""

from roulette.integrations.notifier import Notifier, SlackNotifier
from roulette.integrations.stats import (
    CompletionEvent,
    CompletionSink,
    NullCompletionSink,
    WebhookCompletionSink,
    create_completion_sink,
)

__all__ = [
    "Notifier",
    "SlackNotifier",
    "CompletionEvent",
    "CompletionSink",
    "NullCompletionSink",
    "WebhookCompletionSink",
    "create_completion_sink",
]
