"""Pydantic request/response schemas for strain reference cards."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class StrainCreate(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	scientific_name: str | None = Field(default=None, max_length=255)
	photo_url: str | None = Field(default=None, max_length=2048)
	description: str | None = None


class StrainUpdate(BaseModel):
	model_config = ConfigDict(extra="forbid")

	name: str | None = Field(default=None, min_length=1, max_length=255)
	scientific_name: str | None = Field(default=None, max_length=255)
	photo_url: str | None = Field(default=None, max_length=2048)
	description: str | None = None


class StrainRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	name: str
	scientific_name: str | None = None
	photo_url: str | None = None
	description: str | None = None
	created_at: datetime
	updated_at: datetime
