"""Notification channels for license events: log and webhook."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from corebridge_licensing.events.types import Event

logger = logging.getLogger("corebridge.notifications.channels")


class NotificationChannel(ABC):
    """Base class for notification channels."""

    name: str = "channel"

    @abstractmethod
    async def send(self, event: Event) -> bool:
        """Deliver a notification for the event. Returns True on success."""
        ...


class LogChannel(NotificationChannel):
    """Writes notices to the service log."""

    name = "log"

    def __init__(self, logger_name: str = "corebridge.notifications") -> None:
        self._logger = logging.getLogger(logger_name)

    async def send(self, event: Event) -> bool:
        self._logger.warning("[%s] %s", event.severity, event.message or event.type)
        return True


class WebhookChannel(NotificationChannel):
    """Sends notices via HTTP POST. Auto-detects Slack/Discord URL patterns."""

    name = "webhook"

    def __init__(
        self,
        urls: list[str],
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._urls = urls
        self._timeout = timeout
        self._transport = transport

    async def send(self, event: Event) -> bool:
        if not self._urls:
            return True

        success = True
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            for url in self._urls:
                payload = self._format_payload(url, event)
                try:
                    resp = await client.post(url, json=payload)
                    if resp.status_code >= 400:
                        logger.warning("Webhook returned %d for %s", resp.status_code, url)
                        success = False
                except httpx.HTTPError:
                    logger.exception("Webhook POST failed for %s", url)
                    success = False
        return success

    @staticmethod
    def _format_payload(url: str, event: Event) -> dict[str, Any]:
        title = f"[{event.severity}] {event.type}"
        body = event.message or "No details available"

        if "hooks.slack.com" in url:
            return {
                "text": f"*{title}*\n{body}",
                "blocks": [
                    {
                        "type": "section",
                        "text": {"type": "mrkdwn", "text": f"*{title}*\n{body}"},
                    }
                ],
            }
        if "discord.com/api/webhooks" in url:
            return {
                "content": f"**{title}**\n{body}",
            }
        # Generic webhook
        return {
            "title": title,
            "message": body,
            "severity": str(event.severity),
            "source": str(event.source),
            "event_type": str(event.type),
            "data": event.data,
            "timestamp": event.timestamp.isoformat(),
        }
