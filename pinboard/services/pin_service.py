from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable

from ..errors import NotAuthorized, ValidationFailed
from ..events import PIN_CREATED, PIN_DELETED, PIN_UPDATED, PinEvents
from ..stores.pins import PinRecord, PinStore
from ..stores.users import UserRecord

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "description", "image")


def _now() -> datetime:
    # naive UTC, the same shape both stores hand back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def clean_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationFailed("Title is required")
    return cleaned


class PinService:
    """Create, edit and delete pins; only the owner may change or remove a pin."""

    def __init__(self, store: PinStore, events: PinEvents, clock: Callable[[], datetime] = _now) -> None:
        self.store = store
        self.events = events
        self.clock = clock

    def get(self, pin_id: int) -> PinRecord:
        return self.store.get(pin_id)

    def create(self, user: UserRecord, *, title: str | None, description: str | None, image: str) -> PinRecord:
        if not image:
            raise ValidationFailed("Image file is required")
        pin = self.store.insert(
            title=clean_title(title),
            description=description or "",
            image=image,
            owner_id=user.id,
            owner_username=user.username,
            created_at=self.clock(),
        )
        logger.info("Pin %s created by %s", pin.id, user.username)
        self.events.publish(PIN_CREATED, pin.id, pin)
        return pin

    def _owned(self, pin_id: int, user: UserRecord) -> PinRecord:
        pin = self.store.get(pin_id)
        if pin.owner_id != user.id:
            raise NotAuthorized()
        return pin

    def update(self, pin_id: int, user: UserRecord, changes: dict) -> PinRecord:
        self._owned(pin_id, user)
        update = {k: v for k, v in changes.items() if k in EDITABLE_FIELDS and v is not None}
        if "title" in update:
            update["title"] = clean_title(update["title"])
        if "image" in update and not update["image"]:
            raise ValidationFailed("Image reference cannot be empty")
        if not update:
            return self.store.get(pin_id)
        update["updated_at"] = self.clock()
        pin = self.store.update_by_id(pin_id, update)
        logger.info("Pin %s updated by %s: %s", pin_id, user.username, sorted(update))
        self.events.publish(PIN_UPDATED, pin.id, pin)
        return pin

    def delete(self, pin_id: int, user: UserRecord) -> None:
        self._owned(pin_id, user)
        self.store.delete_by_id(pin_id)
        logger.info("Pin %s deleted by %s", pin_id, user.username)
        self.events.publish(PIN_DELETED, pin_id)
