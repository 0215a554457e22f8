"""Integration tests for completion statistics sinks."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from uuid import uuid4

import httpx
import pytest
import respx

from roulette.config import StatsConfig
from roulette.integrations.stats import (
    CompletionEvent,
    NullCompletionSink,
    WebhookCompletionSink,
    create_completion_sink,
)

WEBHOOK_URL = "https://stats.example.com/webhook/reviews"


def _event() -> CompletionEvent:
    return CompletionEvent(
        assignment_id=uuid4(),
        reviewer_id=uuid4(),
        repository_id=uuid4(),
        completed_at=datetime(2026, 10, 14, 12, 0, tzinfo=timezone.utc),
        response_time_minutes=42,
    )


def test_completion_event_to_dict() -> None:
    """Verify event serialization."""
    event = _event()

    result = event.to_dict()

    assert result["event_type"] == "review_completed"
    assert result["assignment_id"] == str(event.assignment_id)
    assert result["reviewer_id"] == str(event.reviewer_id)
    assert result["repository_id"] == str(event.repository_id)
    assert result["completed_at"] == "2026-10-14T12:00:00+00:00"
    assert result["response_time_minutes"] == 42


def test_create_completion_sink() -> None:
    assert isinstance(create_completion_sink(StatsConfig()), NullCompletionSink)
    assert isinstance(
        create_completion_sink(StatsConfig(webhook_url=WEBHOOK_URL)), WebhookCompletionSink
    )
    assert isinstance(
        create_completion_sink(StatsConfig(webhook_url=WEBHOOK_URL, enabled=False)),
        NullCompletionSink,
    )


@respx.mock
@pytest.mark.asyncio
async def test_webhook_sink_success() -> None:
    """Mock successful webhook."""
    route = respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(200))
    sink = WebhookCompletionSink(StatsConfig(webhook_url=WEBHOOK_URL, auth_header="Bearer s3"))
    event = _event()

    assert await sink.emit(event) is True

    request = route.calls.last.request
    assert request.headers["Authorization"] == "Bearer s3"
    assert json.loads(request.content)["assignment_id"] == str(event.assignment_id)
    await sink.close()


@respx.mock
@pytest.mark.asyncio
async def test_webhook_sink_http_error() -> None:
    respx.post(WEBHOOK_URL).mock(return_value=httpx.Response(503))
    sink = WebhookCompletionSink(StatsConfig(webhook_url=WEBHOOK_URL))

    assert await sink.emit(_event()) is False
    await sink.close()


@respx.mock
@pytest.mark.asyncio
async def test_webhook_sink_network_error() -> None:
    respx.post(WEBHOOK_URL).mock(side_effect=httpx.ConnectError("Connection refused"))
    sink = WebhookCompletionSink(StatsConfig(webhook_url=WEBHOOK_URL))

    assert await sink.emit(_event()) is False
    await sink.close()


@pytest.mark.asyncio
async def test_null_sink_always_succeeds() -> None:
    assert await NullCompletionSink().emit(_event()) is True
