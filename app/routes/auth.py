"""Token issuing, refresh and self-registration routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import (
	auth_http_error,
	authenticate_user,
	get_current_user,
	hash_password,
	load_active_user,
	normalize_email,
)
from app.auth.jwt import AuthError, decode_token, issue_token_pair
from app.auth.models import User
from app.database import get_db
from app.models.enums import UserRoleEnum
from app.schemas.auth import LoginRequest, RefreshRequest, RegisterRequest, TokenResponse, UserRead

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(user: User) -> TokenResponse:
	pair = issue_token_pair(str(user.id), role=str(user.role.value))
	return TokenResponse(
		access_token=pair.access_token,
		refresh_token=pair.refresh_token,
		expires_in=pair.expires_in,
	)


@router.post("/token", response_model=TokenResponse)
async def issue_token(payload: LoginRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
	try:
		user = await authenticate_user(db, payload.email, payload.password)
	except AuthError as exc:
		raise auth_http_error(exc) from exc
	return _token_response(user)


@router.post("/refresh", response_model=TokenResponse)
async def refresh_token(payload: RefreshRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
	try:
		claims = decode_token(payload.refresh_token, expected_type="refresh")
		user = await load_active_user(db, str(claims["sub"]))
	except AuthError as exc:
		raise auth_http_error(exc) from exc
	return _token_response(user)


@router.post("/register", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)) -> UserRead:
	email = normalize_email(payload.email)
	existing = await db.execute(select(User.id).where(User.email == email))
	if existing.scalar_one_or_none() is not None:
		raise HTTPException(
			status_code=status.HTTP_409_CONFLICT,
			detail={"error": "email_taken", "message": "An account with this email already exists"},
		)
	user = User(email=email, hashed_password=hash_password(payload.password), role=UserRoleEnum.grower)
	db.add(user)
	await db.flush()
	await db.refresh(user)
	return UserRead.model_validate(user)


@router.get("/me", response_model=UserRead)
async def read_me(current_user: User = Depends(get_current_user)) -> UserRead:
	return UserRead.model_validate(current_user)
