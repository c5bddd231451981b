from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text, func
from sqlalchemy import DateTime as _DateTime
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


class AlbumRecord(Base):
    __tablename__ = "albums"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    path: Mapped[str] = mapped_column(Text, nullable=False, unique=True, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    parent_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("albums.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        _DateTime(timezone=True), server_default=func.now()
    )

    # relationships
    parent = relationship("AlbumRecord", remote_side="AlbumRecord.id", back_populates="children")
    children = relationship("AlbumRecord", back_populates="parent", cascade="all, delete-orphan")
    media = relationship("MediaRecord", back_populates="album", cascade="all, delete-orphan")


class MediaRecord(Base):
    __tablename__ = "media"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    album_id: Mapped[str] = mapped_column(
        ForeignKey("albums.id", ondelete="CASCADE"), nullable=False, index=True
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    hash: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    media_type: Mapped[str] = mapped_column(String(10), nullable=False)
    captured_at: Mapped[Optional[datetime]] = mapped_column(
        _DateTime(timezone=True), nullable=True, index=True
    )
    width: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    height: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        _DateTime(timezone=True), server_default=func.now()
    )

    album = relationship("AlbumRecord", back_populates="media")
