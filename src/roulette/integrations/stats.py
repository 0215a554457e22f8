"""Completion statistics sinks for Roulette.

When a reviewer approves an assignment, a completion event with the
response time is handed to a sink. Delivery is best effort: a failing
sink is logged and never rolls back the approval.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol
from uuid import UUID

import httpx

from roulette.config import StatsConfig
from roulette.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CompletionEvent:
    """An approved assignment, as reported to statistics consumers."""

    assignment_id: UUID
    reviewer_id: UUID
    repository_id: UUID
    completed_at: datetime
    response_time_minutes: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""
        return {
            "event_type": "review_completed",
            "assignment_id": str(self.assignment_id),
            "reviewer_id": str(self.reviewer_id),
            "repository_id": str(self.repository_id),
            "completed_at": self.completed_at.isoformat(),
            "response_time_minutes": self.response_time_minutes,
        }


class CompletionSink(Protocol):
    """Receiver of completion events."""

    async def emit(self, event: CompletionEvent) -> bool: ...


class NullCompletionSink:
    """Sink that only logs completion events."""

    async def emit(self, event: CompletionEvent) -> bool:
        logger.info(
            "review_completed",
            assignment_id=str(event.assignment_id),
            reviewer_id=str(event.reviewer_id),
            response_time_minutes=event.response_time_minutes,
        )
        return True


class WebhookCompletionSink:
    """Posts completion events to an HTTP endpoint."""

    def __init__(self, config: StatsConfig) -> None:
        self.config = config
        self.logger = get_logger(__name__)
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.config.timeout_seconds)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def emit(self, event: CompletionEvent) -> bool:
        """Send a completion event to the configured webhook.

        Returns True if successful, False otherwise.
        """
        if not self.config.enabled or not self.config.webhook_url:
            self.logger.debug("stats_webhook_disabled", assignment_id=str(event.assignment_id))
            return True

        try:
            client = await self._get_client()
            headers = {"Content-Type": "application/json"}
            if self.config.auth_header:
                headers["Authorization"] = self.config.auth_header

            response = await client.post(
                self.config.webhook_url,
                json=event.to_dict(),
                headers=headers,
            )

            if response.is_success:
                self.logger.info(
                    "stats_webhook_sent",
                    assignment_id=str(event.assignment_id),
                    status_code=response.status_code,
                )
                return True

            self.logger.warning(
                "stats_webhook_failed",
                assignment_id=str(event.assignment_id),
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            return False

        except httpx.RequestError as e:
            self.logger.error(
                "stats_webhook_error",
                assignment_id=str(event.assignment_id),
                error=str(e),
            )
            return False


def create_completion_sink(config: StatsConfig) -> CompletionSink:
    """Build the sink matching the configuration."""
    if config.enabled and config.webhook_url:
        return WebhookCompletionSink(config)
    return NullCompletionSink()
