"""Slack-compatible incoming webhook notifier."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from migration_deployer.core.errors import NotificationError
from migration_deployer.core.models import Outcome

logger = logging.getLogger(__name__)

LOG_EXCERPT_LIMIT = 1000
ERROR_BODY_LIMIT = 1024
DEFAULT_TIMEOUT = 10.0


def log_excerpt(log: str, limit: int = LOG_EXCERPT_LIMIT) -> str:
    """Return at most the first ``limit`` characters of ``log``."""
    return log[:limit]


def build_payload(version: str, outcome: Outcome) -> dict[str, Any]:
    """Build the webhook message for an outcome.

    Returns:
        Attachment-style payload with a color, a title with a status glyph,
        version/status fields and a fenced log excerpt.
    """
    if outcome.succeeded:
        color, emoji = "good", "✅"
    else:
        color, emoji = "danger", "❌"
    status = outcome.status.value
    return {
        "attachments": [
            {
                "color": color,
                "title": f"{emoji} Migration {status}",
                "fields": [
                    {"title": "Version", "value": version, "short": True},
                    {"title": "Status", "value": status, "short": True},
                ],
                "text": f"```\n{log_excerpt(outcome.log)}\n```",
            }
        ]
    }


class WebhookNotifier:
    """Posts outcome summaries to an incoming webhook URL."""

    def __init__(
        self,
        url: str,
        timeout: float = DEFAULT_TIMEOUT,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            url: Incoming webhook URL.
            timeout: Request timeout in seconds.
            client: Optional httpx client (tests inject a MockTransport).
        """
        self._url = url
        self._timeout = timeout
        self._client = client

    def send(self, version: str, outcome: Outcome) -> None:
        payload = build_payload(version, outcome)
        try:
            if self._client is not None:
                response = self._client.post(self._url, json=payload, timeout=self._timeout)
            else:
                with httpx.Client(timeout=self._timeout) as client:
                    response = client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(f"Failed to send webhook notification: {e}") from e

        if not response.is_success:
            body = response.text[:ERROR_BODY_LIMIT]
            raise NotificationError(
                f"Webhook returned status {response.status_code}: {body}"
            )
        logger.info("Webhook notification sent for version %s", version)
