"""Pydantic schemas for token issuing and user registration."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import UserRoleEnum

_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class LoginRequest(BaseModel):
	email: str = Field(min_length=3, max_length=320, pattern=_EMAIL_PATTERN)
	password: str = Field(min_length=1, max_length=256)


class RegisterRequest(BaseModel):
	email: str = Field(min_length=3, max_length=320, pattern=_EMAIL_PATTERN)
	password: str = Field(min_length=8, max_length=256)


class RefreshRequest(BaseModel):
	refresh_token: str = Field(min_length=1)


class TokenResponse(BaseModel):
	access_token: str
	refresh_token: str
	token_type: str = "bearer"
	expires_in: int


class UserRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	email: str
	role: UserRoleEnum
	is_active: bool
	created_at: datetime
