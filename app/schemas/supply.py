"""Pydantic request/response schemas for supplies, recipes and the supply ledger."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AuditAction(StrEnum):
	add = "add"
	edit = "edit"
	delete = "delete"
	restock = "restock"
	consume = "consume"
	refund = "reconcile_refund"


# ── Supplies ────────────────────────────────────────────────────────────────


class SupplyCreate(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	type: str = Field(default="", max_length=64)
	unit: str = Field(default="", max_length=32)
	cost: float = Field(default=0, ge=0)
	quantity: float = Field(default=0, ge=0)
	reorder_link: str | None = Field(default=None, max_length=2048)
	low_stock_threshold: float = Field(default=0, ge=0)


class SupplyUpdate(BaseModel):
	model_config = ConfigDict(extra="forbid")

	name: str | None = Field(default=None, min_length=1, max_length=255)
	type: str | None = Field(default=None, max_length=64)
	unit: str | None = Field(default=None, max_length=32)
	cost: float | None = Field(default=None, ge=0)
	quantity: float | None = Field(default=None, ge=0)
	reorder_link: str | None = Field(default=None, max_length=2048)
	low_stock_threshold: float | None = Field(default=None, ge=0)


class SupplyRead(BaseModel):
	id: uuid.UUID
	name: str
	type: str
	unit: str
	cost: float
	quantity: float
	reorder_link: str | None = None
	low_stock_threshold: float
	stock_status: str
	created_at: datetime
	updated_at: datetime


class RestockRequest(BaseModel):
	amount: float = Field(gt=0)
	note: str | None = Field(default=None, max_length=2000)


class StockAlertsRead(BaseModel):
	empty: list[SupplyRead] = Field(default_factory=list)
	low: list[SupplyRead] = Field(default_factory=list)


class SupplyAuditRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	supply_id: uuid.UUID | None = None
	action: str
	amount: float
	unit: str | None = None
	unit_cost_applied: float | None = None
	total_cost_applied: float | None = None
	recipe_id: uuid.UUID | None = None
	recipe_name: str | None = None
	grow_id: uuid.UUID | None = None
	note: str = ""
	created_at: datetime


# ── Recipes ─────────────────────────────────────────────────────────────────


class RecipeItemIn(BaseModel):
	supply_id: uuid.UUID
	amount: float = Field(gt=0)
	unit: str | None = Field(default=None, max_length=32)


class RecipeCreate(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	tags: list[str] = Field(default_factory=list)
	items: list[RecipeItemIn] = Field(min_length=1)
	instructions: str = ""
	yield_qty: float = Field(default=1, gt=0)
	yield_unit: str | None = Field(default=None, max_length=32)
	serving_label: str | None = Field(default=None, max_length=64)

	@field_validator("tags")
	@classmethod
	def _normalize_tags(cls, value: list[str]) -> list[str]:
		return normalize_tags(value)


class RecipeUpdate(BaseModel):
	model_config = ConfigDict(extra="forbid")

	name: str | None = Field(default=None, min_length=1, max_length=255)
	tags: list[str] | None = None
	items: list[RecipeItemIn] | None = Field(default=None, min_length=1)
	instructions: str | None = None
	yield_qty: float | None = Field(default=None, gt=0)
	yield_unit: str | None = Field(default=None, max_length=32)
	serving_label: str | None = Field(default=None, max_length=64)

	@field_validator("tags")
	@classmethod
	def _normalize_tags(cls, value: list[str] | None) -> list[str] | None:
		return None if value is None else normalize_tags(value)


class RecipeItemRead(BaseModel):
	supply_id: uuid.UUID | None = None
	name: str | None = None
	amount: float
	unit: str = ""


class RecipeRead(BaseModel):
	id: uuid.UUID
	name: str
	tags: list[str] = Field(default_factory=list)
	items: list[RecipeItemRead] = Field(default_factory=list)
	instructions: str = ""
	yield_qty: float
	yield_unit: str | None = None
	serving_label: str | None = None
	total_cost: float
	cost_per_serving: float
	created_at: datetime
	updated_at: datetime


class ConsumeRequest(BaseModel):
	batch_count: int = Field(default=1, ge=1)
	per_child_qty: float | None = Field(default=None, ge=0)
	per_child_unit: str | None = Field(default=None, max_length=32)
	grow_id: uuid.UUID | None = None
	note: str = Field(default="", max_length=2000)


def normalize_tags(tags: list[str]) -> list[str]:
	"""Trimmed, lower-cased, de-duplicated, first occurrence wins."""
	seen: dict[str, None] = {}
	for tag in tags:
		token = tag.strip().lower()
		if token:
			seen.setdefault(token, None)
	return list(seen)
