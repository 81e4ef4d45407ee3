from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class AfkNotification:
    run_id: str
    user_id: str
    message: str
    channel_id: str

    def as_dict(self) -> dict:
        return asdict(self)


class NotificationSink(Protocol):
    def send(self, notification: AfkNotification) -> None: ...


class LoggingNotificationSink:
    """Default sink; delivery to a chat channel is left to the embedding bot."""

    def send(self, notification: AfkNotification) -> None:
        logger.info(
            "afk notification run=%s user=%s channel=%s: %s",
            notification.run_id,
            notification.user_id,
            notification.channel_id,
            notification.message,
        )


class InMemoryNotificationSink:
    def __init__(self) -> None:
        self.sent: list[AfkNotification] = []

    def send(self, notification: AfkNotification) -> None:
        self.sent.append(notification)
