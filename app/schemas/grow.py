"""Pydantic request/response schemas for grows, flushes, notes and photos."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GrowDataset(StrEnum):
	active = "active"
	stored = "stored"
	archived = "archived"
	all = "all"


class GrowCreate(BaseModel):
	strain: str = Field(min_length=1, max_length=255)
	type: str = Field(default="Other", max_length=64)
	abbreviation: str | None = Field(default=None, max_length=32)
	inoculated_at: date | datetime | None = Field(default=None, union_mode="left_to_right")
	cost: float | None = Field(default=None, ge=0)
	recipe_items: list[dict[str, Any]] | None = None
	extra: dict[str, Any] | None = None
	recipe_id: uuid.UUID | None = None
	amount_total: float | None = Field(default=None, ge=0)
	amount_unit: str | None = Field(default=None, max_length=32)


class GrowUpdate(BaseModel):
	"""Field edits; ``stage`` is the manual, unconstrained stage edit.

	Changing ``recipe_id`` or the amount returns the previous draw to stock and
	consumes the new one; an explicit ``recipe_id: null`` unlinks the recipe.
	"""

	model_config = ConfigDict(extra="forbid")

	strain: str | None = Field(default=None, min_length=1, max_length=255)
	type: str | None = Field(default=None, max_length=64)
	abbreviation: str | None = Field(default=None, max_length=32)
	stage: str | None = Field(default=None, max_length=64)
	stage_at: date | datetime | None = Field(default=None, union_mode="left_to_right")
	cost: float | None = Field(default=None, ge=0)
	recipe_items: list[dict[str, Any]] | None = None
	extra: dict[str, Any] | None = None
	recipe_id: uuid.UUID | None = None
	amount_total: float | None = Field(default=None, ge=0)
	amount_unit: str | None = Field(default=None, max_length=32)


class AdvanceRequest(BaseModel):
	at: date | datetime | None = Field(default=None, union_mode="left_to_right")


class StoreRequest(BaseModel):
	location: str | None = Field(default=None, max_length=255)


class StageDateUpdate(BaseModel):
	value: date | datetime = Field(union_mode="left_to_right")


class FlushPatch(BaseModel):
	model_config = ConfigDict(extra="forbid", populate_by_name=True)

	wet: float | None = Field(default=None, ge=0)
	dry: float | None = Field(default=None, ge=0)
	harvested_on: date | None = Field(default=None, alias="date")
	note: str | None = Field(default=None, max_length=2000)

	def to_changes(self) -> dict[str, Any]:
		return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GrowActionsRead(BaseModel):
	next_stage: str | None = None
	store_label: str | None = None
	archive_label: str


class GrowRead(BaseModel):
	id: uuid.UUID
	strain: str
	abbreviation: str | None = None
	type: str
	stage: str
	status: str
	stage_dates: dict[str, Any] = Field(default_factory=dict)
	flushes: list[Any] = Field(default_factory=list)
	cost: float | None = None
	recipe_items: list[dict[str, Any]] | None = None
	wet_total: float = 0
	dry_total: float = 0
	extra: dict[str, Any] = Field(default_factory=dict)
	actions: GrowActionsRead
	created_at: datetime
	updated_at: datetime


class GrowTransitionRead(BaseModel):
	applied: bool
	changes: dict[str, Any] = Field(default_factory=dict)
	grow: GrowRead


class NoteCreate(BaseModel):
	stage: str | None = Field(default=None, max_length=64)
	text: str = Field(min_length=1, max_length=10000)


class NoteRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	grow_id: uuid.UUID
	stage: str
	text: str
	created_at: datetime


class PhotoCreate(BaseModel):
	stage: str | None = Field(default=None, max_length=64)
	url: str = Field(min_length=1, max_length=2048)
	caption: str = Field(default="", max_length=500)
	storage_path: str | None = Field(default=None, max_length=1024)


class PhotoRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	grow_id: uuid.UUID
	stage: str
	url: str
	caption: str
	storage_path: str | None = None
	created_at: datetime
