"""Grow, GrowNote, GrowPhoto ORM models: cultivation batches and their journal.

A grow row keeps the fields the lifecycle and analytics code relies on as
typed columns; anything else a document carried (legacy aliases such as
``inoc`` / ``inoculationDate``, archive markers, ``wetYield``, storage
location, ...) lives in ``extra``.  ``stage``, ``status`` and ``grow_type`` are plain
strings; normalization happens in ``app.services.lifecycle``.

``stage_dates`` (JSONB) maps stage name to the ISO timestamp it was entered::

    {"Inoculated": "2026-03-01", "Colonizing": "2026-03-09T18:22:10+00:00"}

``flushes`` (JSONB) is the ordered harvest list::

    [{"wet": 412.0, "dry": 38.5, "createdAt": "2026-04-02T10:00:00+00:00"}]
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# ═══════════════════════════════════════════════════════════════════════════
# Grow
# ═══════════════════════════════════════════════════════════════════════════


class Grow(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One tracked cultivation batch."""

    __tablename__ = "grows"
    __table_args__ = (Index("ix_grows_user_status", "user_id", "status"),)

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    strain: Mapped[str] = mapped_column(
        String(255), nullable=False, default="", server_default=text("''")
    )
    abbreviation: Mapped[str | None] = mapped_column(String(32), nullable=True)
    grow_type: Mapped[str] = mapped_column(
        String(64), nullable=False, default="Other", server_default=text("'Other'")
    )
    stage: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="Inoculated",
        server_default=text("'Inoculated'"),
    )
    status: Mapped[str] = mapped_column(
        String(64), nullable=False, default="Active", server_default=text("'Active'")
    )
    stage_dates: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )
    flushes: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    cost: Mapped[float | None] = mapped_column(Numeric(12, 2), nullable=True)
    recipe_items: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSONB, nullable=True
    )
    extra: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )

    # ── Relationships ────────────────────────────────────────────────────
    notes: Mapped[list[GrowNote]] = relationship(
        back_populates="grow",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    photos: Mapped[list[GrowPhoto]] = relationship(
        back_populates="grow",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return (
            f"<Grow id={self.id} strain={self.strain!r} "
            f"stage={self.stage!r} status={self.status!r}>"
        )


# ═══════════════════════════════════════════════════════════════════════════
# Journal entries
# ═══════════════════════════════════════════════════════════════════════════


class GrowNote(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Free-text note filed under a stage (or ``General``)."""

    __tablename__ = "grow_notes"
    __table_args__ = (Index("ix_grow_notes_grow_id", "grow_id"),)

    grow_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("grows.id", ondelete="CASCADE"),
        nullable=False,
    )
    stage: Mapped[str] = mapped_column(String(64), nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)

    grow: Mapped[Grow] = relationship(back_populates="notes")

    def __repr__(self) -> str:
        return f"<GrowNote id={self.id} grow={self.grow_id} stage={self.stage!r}>"


class GrowPhoto(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Reference to an uploaded photo; the blob itself lives in object storage."""

    __tablename__ = "grow_photos"
    __table_args__ = (Index("ix_grow_photos_grow_id", "grow_id"),)

    grow_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("grows.id", ondelete="CASCADE"),
        nullable=False,
    )
    stage: Mapped[str] = mapped_column(String(64), nullable=False)
    url: Mapped[str] = mapped_column(String(2048), nullable=False)
    caption: Mapped[str] = mapped_column(
        String(500), nullable=False, default="", server_default=text("''")
    )
    storage_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    grow: Mapped[Grow] = relationship(back_populates="photos")

    def __repr__(self) -> str:
        return f"<GrowPhoto id={self.id} grow={self.grow_id} stage={self.stage!r}>"
