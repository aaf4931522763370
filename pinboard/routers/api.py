from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from ..auth import make_token, require_user
from ..events import PinEvents
from ..schemas import LoginIn, PinUpdate, RegisterIn, event_json, pin_json, user_json
from ..services import account_service
from ..services.feed_service import FeedService
from ..services.image_storage import ImageStorage
from ..services.pin_service import PinService, clean_title
from ..stores.backend import Backend
from ..stores.pins import PinRecord
from ..stores.users import UserRecord

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

# -------- dependencies --------

def get_backend(request: Request) -> Backend:
    return request.app.state.backend

def get_feed(request: Request) -> FeedService:
    return request.app.state.feed

def get_pin_service(request: Request) -> PinService:
    return request.app.state.pin_service

def get_images(request: Request) -> ImageStorage:
    return request.app.state.images

def get_events(request: Request) -> PinEvents:
    return request.app.state.events

def current_user(request: Request, backend: Backend = Depends(get_backend)) -> UserRecord:
    return require_user(request, backend.users)

def _pin(pin: PinRecord, images: ImageStorage) -> dict:
    return pin_json(pin, images.resolve_url(pin.image))

# -------- routes --------

@router.get("/test", name="api_test")
def api_test(backend: Backend = Depends(get_backend)):
    return {"msg": "API Working!", "mode": backend.mode.value}

@router.post("/register", name="register")
def register(payload: RegisterIn, backend: Backend = Depends(get_backend)):
    user = account_service.register(backend.users, payload.username, payload.email, payload.password)
    return {"token": make_token(user.id), "user": user_json(user)}

@router.post("/login", name="login")
def login(payload: LoginIn, backend: Backend = Depends(get_backend)):
    user = account_service.authenticate(backend.users, payload.email, payload.password)
    return {"token": make_token(user.id), "user": user_json(user)}

@router.get("/me", name="me")
def me(user: UserRecord = Depends(current_user)):
    return {"user": user_json(user)}

@router.get("/pins", name="list_pins")
def list_pins(
    search: str = "",
    page: Optional[str] = None,
    limit: Optional[str] = None,
    feed: FeedService = Depends(get_feed),
    images: ImageStorage = Depends(get_images),
):
    # page/limit stay strings so bad values are clamped rather than rejected
    result = feed.query(search, page=page, page_size=limit)
    return {
        "pins": [_pin(p, images) for p in result.items],
        "total": result.total,
        "hasMore": result.has_more,
    }

@router.post("/pins", name="create_pin", status_code=201)
def create_pin(
    title: str = Form(...),
    description: str = Form(""),
    image: UploadFile = File(...),
    user: UserRecord = Depends(current_user),
    pins: PinService = Depends(get_pin_service),
    images: ImageStorage = Depends(get_images),
):
    title = clean_title(title)
    stored = images.save(image.filename, image.content_type, image.file.read())
    pin = pins.create(user, title=title, description=description, image=stored.url)
    return _pin(pin, images)

@router.get("/pins/user/{user_id}", name="user_pins")
def user_pins(user_id: int, feed: FeedService = Depends(get_feed), images: ImageStorage = Depends(get_images)):
    return [_pin(p, images) for p in feed.user_pins(user_id)]

@router.get("/pins/{pin_id}", name="get_pin")
def get_pin(pin_id: int, pins: PinService = Depends(get_pin_service), images: ImageStorage = Depends(get_images)):
    return _pin(pins.get(pin_id), images)

@router.put("/pins/{pin_id}", name="update_pin")
def update_pin(
    pin_id: int,
    payload: PinUpdate,
    user: UserRecord = Depends(current_user),
    pins: PinService = Depends(get_pin_service),
    images: ImageStorage = Depends(get_images),
):
    pin = pins.update(pin_id, user, payload.model_dump(exclude_unset=True))
    return _pin(pin, images)

@router.delete("/pins/{pin_id}", name="delete_pin")
def delete_pin(pin_id: int, user: UserRecord = Depends(current_user), pins: PinService = Depends(get_pin_service)):
    pins.delete(pin_id, user)
    return {"msg": "Deleted"}

@router.get("/history", name="history")
def history(feed: FeedService = Depends(get_feed), images: ImageStorage = Depends(get_images)):
    return [_pin(p, images) for p in feed.history()]

@router.post("/upload/image", name="upload_image")
def upload_image(image: UploadFile = File(...), images: ImageStorage = Depends(get_images)):
    stored = images.save(image.filename, image.content_type, image.file.read())
    return {
        "message": "File uploaded successfully",
        "file": {
            "filename": stored.filename,
            "originalName": stored.original_name,
            "size": stored.size,
            "url": stored.url,
        },
    }

@router.get("/upload/files", name="upload_files")
def upload_files(images: ImageStorage = Depends(get_images)):
    files = images.list_files()
    return {
        "files": [
            {
                "name": f.name,
                "size": f.size,
                "created": f.created.isoformat() if f.created else None,
                "url": f.url,
            }
            for f in files
        ]
    }

@router.get("/uploads-list", name="uploads_list")
def uploads_list(images: ImageStorage = Depends(get_images)):
    names = [f.name for f in images.list_files()]
    return {"message": f"Found {len(names)} files in uploads folder", "files": names}

@router.get("/events", name="pin_events")
def pin_events(after: int = 0, events: PinEvents = Depends(get_events)):
    recent = events.since(after)
    return {"events": [event_json(e) for e in recent], "last": events.last_seq}
