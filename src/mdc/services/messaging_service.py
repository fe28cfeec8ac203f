from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from mdc.domain.errors import ValidationError
from mdc.domain.models import ChatMessage, new_id
from mdc.repositories.contracts import RealtimeFeed

log = logging.getLogger(__name__)


class MessagingService:
    """One thread per client; the thread id is the client's id."""

    def __init__(self, repo, feed: RealtimeFeed):
        self.repo = repo
        self.feed = feed

    def send(self, thread_id: str, sender_id: str, text: str) -> ChatMessage:
        text = (text or "").strip()
        if not text:
            raise ValidationError("Message is empty.")
        if not thread_id:
            raise ValidationError("Thread is required.")
        msg = ChatMessage(
            id=new_id(),
            thread_id=thread_id,
            sender_id=sender_id,
            text=text,
            timestamp=datetime.now().isoformat(timespec="seconds"),
        )
        saved = self.repo.add(msg)
        log.debug("message_sent thread=%s sender=%s", thread_id, sender_id)
        return saved

    def history(self, thread_id: str) -> list[ChatMessage]:
        return sorted(self.repo.find("thread_id", thread_id), key=lambda m: m.timestamp)

    def subscribe(self, thread_id: str, callback: Callable[[ChatMessage], None]) -> Callable[[], None]:
        mapper = self.repo.mapper

        def on_row(row: dict) -> None:
            callback(mapper.from_storage_row(row))

        return self.feed.subscribe_inserts(self.repo.table, "thread_id", thread_id, on_row)
