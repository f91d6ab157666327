"""Supply, Recipe, SupplyAudit ORM models: inventory, batch recipes and the consumption ledger.

A supply's ``cost`` is the price of one stock ``unit``; ``quantity`` is the
stock on hand in that unit.  Recipe ``items`` (JSONB) reference supplies by id
with the amount already converted to the supply's stock unit::

    [{"supplyId": "9b0c...", "amount": 500.0, "unit": "g", "amountDisplay": 0.5, "displayUnit": "kg"}]

``supply_audits`` is append-only: every add, edit, delete, restock, consume
and refund writes one row carrying the unit cost in effect at that moment.
Audit rows keep plain ids (no foreign keys) so history survives deletes.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Float, ForeignKey, Index, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# ═══════════════════════════════════════════════════════════════════════════
# Inventory
# ═══════════════════════════════════════════════════════════════════════════


class Supply(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A stocked consumable, container, tool or labour line."""

    __tablename__ = "supplies"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    supply_type: Mapped[str] = mapped_column(
        String(64), nullable=False, default="", server_default=text("''")
    )
    unit: Mapped[str] = mapped_column(
        String(32), nullable=False, default="", server_default=text("''")
    )
    cost: Mapped[float] = mapped_column(
        Numeric(12, 4), nullable=False, default=0, server_default=text("0")
    )
    quantity: Mapped[float] = mapped_column(
        Float, nullable=False, default=0, server_default=text("0")
    )
    reorder_link: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    low_stock_threshold: Mapped[float] = mapped_column(
        Float, nullable=False, default=0, server_default=text("0")
    )

    def __repr__(self) -> str:
        return f"<Supply id={self.id} name={self.name!r} quantity={self.quantity}>"


# ═══════════════════════════════════════════════════════════════════════════
# Recipes
# ═══════════════════════════════════════════════════════════════════════════


class Recipe(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A batch formula: supply amounts that yield ``yield_qty`` of output."""

    __tablename__ = "recipes"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tags: Mapped[list[str]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    items: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    instructions: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=text("''")
    )
    yield_qty: Mapped[float] = mapped_column(
        Float, nullable=False, default=1, server_default=text("1")
    )
    yield_unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    serving_label: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<Recipe id={self.id} name={self.name!r} items={len(self.items or [])}>"


# ═══════════════════════════════════════════════════════════════════════════
# Ledger
# ═══════════════════════════════════════════════════════════════════════════


class SupplyAudit(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """One inventory movement or edit."""

    __tablename__ = "supply_audits"
    __table_args__ = (Index("ix_supply_audits_user_created", "user_id", "created_at"),)

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    supply_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    action: Mapped[str] = mapped_column(String(32), nullable=False)
    amount: Mapped[float] = mapped_column(
        Float, nullable=False, default=0, server_default=text("0")
    )
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    unit_cost_applied: Mapped[float | None] = mapped_column(Numeric(12, 4), nullable=True)
    total_cost_applied: Mapped[float | None] = mapped_column(Numeric(12, 4), nullable=True)
    recipe_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    recipe_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    grow_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    note: Mapped[str] = mapped_column(
        Text, nullable=False, default="", server_default=text("''")
    )

    def __repr__(self) -> str:
        return f"<SupplyAudit action={self.action!r} supply_id={self.supply_id} amount={self.amount}>"
