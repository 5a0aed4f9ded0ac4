"""Timed, dismissible user-facing notifications.

Expiry is evaluated lazily against an injectable clock: a notification is
visible while `now < created_at + duration`, and its action can only be
invoked while visible.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from qscore.config.log import log_extra

logger = logging.getLogger(__name__)

KIND_UNDO = "undo"
KIND_CELEBRATION = "celebration"


@dataclass(frozen=True, slots=True)
class NotificationAction:
    label: str
    effect: Callable[[], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class Notification:
    id: str
    message: str
    kind: str
    duration_ms: int
    created_at: datetime
    action: Optional[NotificationAction] = None

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(milliseconds=self.duration_ms)

    def is_expired(self, at: datetime) -> bool:
        return at >= self.expires_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "kind": self.kind,
            "duration_ms": self.duration_ms,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "action": {"label": self.action.label} if self.action else None,
        }


class NotificationCenter:
    """The single active notification collection."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._items: dict[str, Notification] = {}

    def push(
        self,
        message: str,
        *,
        kind: str,
        duration_ms: int,
        action: Optional[NotificationAction] = None,
    ) -> Notification:
        self._prune()
        notification = Notification(
            id=uuid.uuid4().hex,
            message=message,
            kind=kind,
            duration_ms=duration_ms,
            created_at=self._clock(),
            action=action,
        )
        self._items[notification.id] = notification
        logger.info("Notification shown", extra=log_extra(notification_id=notification.id, kind=kind))
        return notification

    def active(self) -> list[Notification]:
        self._prune()
        return list(self._items.values())

    def get(self, notification_id: str) -> Optional[Notification]:
        self._prune()
        return self._items.get(notification_id)

    def dismiss(self, notification_id: str) -> bool:
        self._prune()
        return self._items.pop(notification_id, None) is not None

    async def invoke(self, notification_id: str) -> tuple[bool, Any]:
        """Run a visible notification's action once and dismiss it.

        Returns `(False, None)` when the notification is gone or has no action.
        """
        notification = self.get(notification_id)
        if notification is None or notification.action is None:
            return False, None
        del self._items[notification_id]
        return True, await notification.action.effect()

    def _prune(self) -> None:
        at = self._clock()
        for notification_id in [key for key, item in self._items.items() if item.is_expired(at)]:
            # Dropping the notification also drops any undo snapshot its action holds.
            del self._items[notification_id]
