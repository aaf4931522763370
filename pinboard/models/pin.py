from __future__ import annotations
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import Mapped, mapped_column

from ..db import Base

class Pin(Base):
    __tablename__ = "pins"
    # feed order: newest first, id breaks timestamp ties
    __table_args__ = (
        Index("ix_pins_feed_order", "created_at", "id"),
        # ids of deleted pins are never handed out again
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True, default="")

    # reference returned by image storage (/uploads/<name> or an s3 key)
    image: Mapped[str] = mapped_column(String(512))

    owner_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime)
    updated_at: Mapped[datetime] = mapped_column(DateTime)
