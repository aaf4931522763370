"""
Request bodies and JSON shapes of the HTTP API.

Responses use the camelCase field names the browser client expects
(``ownerId``, ``createdAt``, ``hasMore``).
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from .events import PinEvent
from .stores.pins import PinRecord
from .stores.users import UserRecord


class RegisterIn(BaseModel):
    username: str = Field(..., description="Display name")
    email: str
    password: str


class LoginIn(BaseModel):
    email: str
    password: str


class PinUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = Field(None, description="Reference returned by /api/upload/image")


def user_json(user: UserRecord) -> dict:
    return {"id": user.id, "username": user.username, "email": user.email}


def pin_json(pin: PinRecord, image_url: str | None = None) -> dict:
    return {
        "id": pin.id,
        "title": pin.title,
        "description": pin.description,
        "image": pin.image,
        "imageUrl": image_url or pin.image,
        "ownerId": pin.owner_id,
        "ownerUsername": pin.owner_username,
        "createdAt": pin.created_at.isoformat(),
        "updatedAt": pin.updated_at.isoformat(),
    }


def event_json(event: PinEvent) -> dict:
    return {
        "seq": event.seq,
        "kind": event.kind,
        "pinId": event.pin_id,
        "at": event.at.isoformat(),
        "pin": pin_json(event.pin) if event.pin is not None else None,
    }
