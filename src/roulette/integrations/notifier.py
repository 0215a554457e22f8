"""Slack notifier for Roulette problem alerts."""

from __future__ import annotations

from typing import Protocol

import httpx

from roulette.config import SlackConfig
from roulette.logging import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    """Anything that can post a message into a chat channel.

    ``post_message`` returns True only when the message was delivered.
    A notifier with ``enabled`` False is never asked to deliver.
    """

    @property
    def enabled(self) -> bool: ...

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: str | None = None,
    ) -> bool: ...


class SlackNotifier:
    """Posts messages through the Slack Web API ``chat.postMessage``."""

    def __init__(self, config: SlackConfig) -> None:
        self.config = config
        self.logger = get_logger(__name__)
        self._client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        """Whether notifications are delivered at all."""
        return self.config.enabled

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_url.rstrip("/"),
                timeout=self.config.timeout_seconds,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def post_message(
        self,
        channel: str,
        text: str,
        thread_ts: str | None = None,
    ) -> bool:
        """Post a message, threaded under ``thread_ts`` when given.

        Returns True if Slack accepted the message, False otherwise
        (including when notifications are disabled and nothing was sent).
        """
        if not self.config.enabled:
            self.logger.debug("slack_disabled", channel=channel, text=text[:200])
            return False

        if not self.config.bot_token:
            self.logger.warning("slack_token_missing", channel=channel)
            return False

        payload: dict[str, str] = {"channel": channel, "text": text}
        if thread_ts:
            payload["thread_ts"] = thread_ts

        try:
            client = await self._get_client()
            response = await client.post(
                "/chat.postMessage",
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.config.bot_token}",
                    "Content-Type": "application/json; charset=utf-8",
                },
            )
        except httpx.RequestError as e:
            self.logger.error("slack_post_error", channel=channel, error=str(e))
            return False

        if not response.is_success:
            self.logger.warning(
                "slack_post_failed",
                channel=channel,
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            return False

        try:
            body = response.json()
        except ValueError:
            self.logger.warning("slack_post_invalid_response", channel=channel)
            return False

        if not isinstance(body, dict):
            self.logger.warning("slack_post_invalid_response", channel=channel)
            return False

        if not body.get("ok", False):
            self.logger.warning("slack_post_rejected", channel=channel, error=body.get("error"))
            return False

        self.logger.info("slack_message_posted", channel=channel, threaded=thread_ts is not None)
        return True
