"""Pydantic schemas for due stage reminders."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ReminderRead(BaseModel):
	id: str
	kind: str
	grow_id: str
	label: str
	title: str
	body: str
	due_at: datetime


class DueRemindersResponse(BaseModel):
	enabled: bool
	generated_at: datetime
	items: list[ReminderRead] = Field(default_factory=list)
