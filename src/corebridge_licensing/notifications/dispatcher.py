"""Fan out expiration notices from the event bus to notification channels."""

from __future__ import annotations

import logging

from corebridge_licensing.config import NotificationConfig
from corebridge_licensing.events.bus import EventBus
from corebridge_licensing.events.types import Event, EventType
from corebridge_licensing.notifications.channels import LogChannel, NotificationChannel, WebhookChannel

logger = logging.getLogger("corebridge.notifications.dispatcher")

NOTIFY_EVENT_TYPES = {EventType.LICENSE_EXPIRING.value}


def build_channels(config: NotificationConfig) -> list[NotificationChannel]:
    channels: list[NotificationChannel] = []
    if config.log_enabled:
        channels.append(LogChannel())
    if config.webhook_urls:
        channels.append(WebhookChannel(config.webhook_urls))
    return channels


class NotificationDispatcher:
    """Subscribes to the bus and delivers each matching event to every channel."""

    def __init__(self, channels: list[NotificationChannel]) -> None:
        self._channels = channels
        self.delivered = 0
        self.failed = 0

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(self.handle, types=NOTIFY_EVENT_TYPES)

    async def handle(self, event: Event) -> None:
        for channel in self._channels:
            if await channel.send(event):
                self.delivered += 1
            else:
                self.failed += 1
                logger.warning("Channel %s failed to deliver %s", channel.name, event.type)
