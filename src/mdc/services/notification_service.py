from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Optional

from mdc.domain.models import ALL_ROLES, AppNotification, NotificationType, new_id
from mdc.services.events import ChangeBus, ChangeEvent

log = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, repo, bus: Optional[ChangeBus] = None):
        self.repo = repo
        self.bus = bus

    def push(self, type: NotificationType, title: str, message: str, target_role: str = ALL_ROLES) -> AppNotification:
        note = AppNotification(
            id=new_id(),
            type=type,
            title=title,
            message=message,
            read=False,
            timestamp=datetime.now().isoformat(timespec="seconds"),
            target_role=target_role,
        )
        saved = self.repo.add(note)
        log.info("notification_pushed type=%s role=%s", saved.type.value, saved.target_role)
        return saved

    def for_role(self, role: str) -> list[AppNotification]:
        """Notifications addressed to ``role`` or to everyone, newest first."""
        notes = [n for n in self.repo.get_all() if n.target_role in (role, ALL_ROLES)]
        return sorted(notes, key=lambda n: n.timestamp, reverse=True)

    def unread_count(self, role: str) -> int:
        return sum(1 for n in self.for_role(role) if not n.read)

    def mark_read(self, notification_id: str) -> AppNotification:
        return self.repo.update(notification_id, read=True)

    def clear_all(self, role: str) -> int:
        unread = [n for n in self.for_role(role) if not n.read]
        for n in unread:
            self.repo.save(replace(n, read=True))
        return len(unread)

    def subscribe(self, callback: Callable[[ChangeEvent], None]) -> Callable[[], None]:
        if self.bus is None:
            raise RuntimeError("Change bus is not configured.")
        return self.bus.subscribe(self.repo.table, callback)
