from __future__ import annotations

import logging
import os
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from ..config import Settings, settings as app_settings
from ..errors import StoreUnavailable, ValidationFailed

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {
    ".jpg",
    ".jpeg",
    ".png",
    ".gif",
    ".bmp",
    ".webp",
    ".heic",
    ".heif",
    ".tif",
    ".tiff",
}

LOCAL_URL_PREFIX = "/uploads/"


@dataclass(frozen=True)
class StoredImage:
    filename: str
    original_name: str | None
    size: int
    url: str


@dataclass(frozen=True)
class StoredFile:
    name: str
    size: int | None
    created: datetime | None
    url: str


def _extension(filename: str | None) -> str:
    return os.path.splitext(filename or "")[1].lower()


def validate_image(filename: str | None, content_type: str | None, data: bytes, max_bytes: int) -> str:
    """Returns the lower-cased file extension of an acceptable image upload."""
    if not data:
        raise ValidationFailed("No file uploaded")
    if len(data) > max_bytes:
        raise ValidationFailed("Image too large")
    ext = _extension(filename)
    if ext not in IMAGE_EXTENSIONS:
        raise ValidationFailed("Unsupported image type")
    if content_type and not content_type.lower().startswith("image/"):
        raise ValidationFailed("Unsupported image type")
    return ext


def _safe_name(original_filename: str | None) -> str:
    name = (original_filename or "upload").strip()
    safe = "".join(ch if ch.isalnum() or ch in ("-", "_", ".", " ") else "_" for ch in name)
    return safe.replace(" ", "_")[:80] or "upload"


class ImageStorage(ABC):
    def __init__(self, max_bytes: int) -> None:
        self.max_bytes = max_bytes

    @abstractmethod
    def save(self, filename: str | None, content_type: str | None, data: bytes) -> StoredImage: ...

    @abstractmethod
    def list_files(self) -> list[StoredFile]: ...

    def resolve_url(self, reference: str) -> str:
        return reference


class LocalImageStorage(ImageStorage):
    """Writes images into ``upload_dir``; the app serves them under ``/uploads``."""

    def __init__(self, upload_dir: str, max_bytes: int) -> None:
        super().__init__(max_bytes)
        self.upload_dir = upload_dir

    def save(self, filename, content_type, data) -> StoredImage:
        ext = validate_image(filename, content_type, data, self.max_bytes)
        name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{ext}"
        os.makedirs(self.upload_dir, exist_ok=True)
        with open(os.path.join(self.upload_dir, name), "wb") as f:
            f.write(data)
        logger.info("Stored upload %s (%s bytes)", name, len(data))
        return StoredImage(filename=name, original_name=filename, size=len(data), url=f"{LOCAL_URL_PREFIX}{name}")

    def list_files(self) -> list[StoredFile]:
        out = []
        if not os.path.isdir(self.upload_dir):
            return out
        for entry in sorted(os.scandir(self.upload_dir), key=lambda e: e.name):
            if not entry.is_file():
                continue
            st = entry.stat()
            out.append(
                StoredFile(
                    name=entry.name,
                    size=st.st_size,
                    created=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
                    url=f"{LOCAL_URL_PREFIX}{entry.name}",
                )
            )
        return out


class S3ImageStorage(ImageStorage):
    """Keeps images in a bucket; pins reference the object key."""

    def __init__(self, bucket: str, prefix: str, max_bytes: int, client: Any = None, region: str | None = None) -> None:
        super().__init__(max_bytes)
        self.bucket = bucket
        self.prefix = prefix if not prefix or prefix.endswith("/") else f"{prefix}/"
        if client is None:
            session = boto3.session.Session(region_name=region)
            client = session.client("s3", config=Config(signature_version="s3v4"))
        self._s3 = client

    def build_object_key(self, original_filename: str | None) -> str:
        # pins/YYYY/MM/<uuid>_<sanitizedname>.jpg
        now = datetime.now(timezone.utc)
        return f"{self.prefix}{now:%Y}/{now:%m}/{uuid.uuid4().hex}_{_safe_name(original_filename)}"

    def save(self, filename, content_type, data) -> StoredImage:
        validate_image(filename, content_type, data, self.max_bytes)
        key = self.build_object_key(filename)
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self._s3.put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 upload failed for %s: %s", key, exc)
            raise StoreUnavailable("Image storage unavailable") from exc
        return StoredImage(filename=key.rsplit("/", 1)[-1], original_name=filename, size=len(data), url=key)

    def list_files(self) -> list[StoredFile]:
        out = []
        paginator = self._s3.get_paginator("list_objects_v2")
        try:
            for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
                for item in page.get("Contents", []):
                    key = item.get("Key")
                    if not key or _extension(key) not in IMAGE_EXTENSIONS:
                        continue
                    out.append(StoredFile(name=key.rsplit("/", 1)[-1], size=item.get("Size"), created=item.get("LastModified"), url=key))
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 listing failed: %s", exc)
            raise StoreUnavailable("Image storage unavailable") from exc
        return out

    def resolve_url(self, reference: str, expires_seconds: int = 3600) -> str:
        return self._s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": reference},
            ExpiresIn=expires_seconds,
        )


def build_image_storage(settings: Settings | None = None) -> ImageStorage:
    settings = settings or app_settings
    if settings.IMAGE_BACKEND == "s3":
        return S3ImageStorage(
            bucket=settings.S3_BUCKET,
            prefix=settings.IMAGES_PREFIX,
            max_bytes=settings.MAX_UPLOAD_BYTES,
            region=settings.AWS_REGION,
        )
    return LocalImageStorage(settings.UPLOAD_DIR, settings.MAX_UPLOAD_BYTES)
