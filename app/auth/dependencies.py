"""Authentication dependencies: password hashing, get_current_user, require_role."""

from __future__ import annotations

import uuid
from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import AuthError, decode_token
from app.auth.models import User
from app.database import get_db
from app.models.enums import UserRoleEnum

bearer_scheme = HTTPBearer(auto_error=False)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

WRITE_ROLES = (UserRoleEnum.admin, UserRoleEnum.grower)


def auth_http_error(exc: AuthError) -> HTTPException:
	return HTTPException(
		status_code=exc.status_code,
		detail={"error": exc.code, "message": exc.detail},
	)


def hash_password(plaintext: str) -> str:
	return pwd_context.hash(plaintext)


def verify_password(plaintext: str, hashed: str) -> bool:
	try:
		return pwd_context.verify(plaintext, hashed)
	except ValueError:
		return False


def normalize_email(email: str) -> str:
	return email.strip().lower()


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User:
	row = await db.execute(select(User).where(User.email == normalize_email(email)))
	user = row.scalar_one_or_none()
	if user is None or not verify_password(password, user.hashed_password):
		raise AuthError(code="credentials_invalid", detail="Incorrect email or password")
	if not user.is_active:
		raise AuthError(code="user_invalid", detail="User is not active")
	return user


async def load_active_user(db: AsyncSession, subject: str) -> User:
	try:
		user_id = uuid.UUID(subject)
	except ValueError as exc:
		raise AuthError(code="token_invalid", detail="Token subject is invalid") from exc

	row = await db.execute(select(User).where(User.id == user_id))
	user = row.scalar_one_or_none()
	if user is None or not user.is_active:
		raise AuthError(code="user_invalid", detail="User is not active")
	return user


async def _resolve_user_from_token(
	db: AsyncSession,
	credentials: HTTPAuthorizationCredentials | None,
) -> User:
	if credentials is None or credentials.scheme.lower() != "bearer":
		raise auth_http_error(AuthError(code="auth_required", detail="Bearer token is required"))

	try:
		payload = decode_token(credentials.credentials, expected_type="access")
		return await load_active_user(db, str(payload["sub"]))
	except AuthError as exc:
		raise auth_http_error(exc) from exc


async def get_current_user(
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> User:
	credentials = await bearer_scheme(request)
	return await _resolve_user_from_token(db, credentials)


def require_role(*allowed: UserRoleEnum) -> Callable[[User], User]:
	allowed_set = set(allowed)

	async def dependency(current_user: User = Depends(get_current_user)) -> User:
		if current_user.role not in allowed_set:
			raise HTTPException(
				status_code=status.HTTP_403_FORBIDDEN,
				detail={"error": "forbidden", "message": "Insufficient role"},
			)
		return current_user

	return dependency


require_writer = require_role(*WRITE_ROLES)
