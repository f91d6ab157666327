"""JWT access/refresh token issuing and validation (python-jose)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from jose import JWTError, jwt

from app.config import get_settings

TokenType = Literal["access", "refresh"]


@dataclass(slots=True)
class AuthError(Exception):
	"""Structured authentication error for consistent mapping at the edge."""

	code: str
	detail: str
	status_code: int = 401


@dataclass(slots=True, frozen=True)
class TokenPair:
	access_token: str
	refresh_token: str
	expires_in: int


def _encode(subject: str, token_type: TokenType, expires_delta: timedelta, extra: dict[str, Any] | None = None) -> str:
	settings = get_settings()
	now = datetime.now(UTC)
	claims: dict[str, Any] = {
		**(extra or {}),
		"sub": subject,
		"typ": token_type,
		"iat": int(now.timestamp()),
		"exp": int((now + expires_delta).timestamp()),
	}
	return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(subject: str, expires_minutes: int | None = None, role: str | None = None) -> str:
	ttl = expires_minutes or get_settings().jwt_access_token_expire_minutes
	return _encode(subject, "access", timedelta(minutes=ttl), {"role": role} if role else None)


def create_refresh_token(subject: str, expires_minutes: int | None = None) -> str:
	ttl = expires_minutes or get_settings().jwt_refresh_token_expire_minutes
	return _encode(subject, "refresh", timedelta(minutes=ttl))


def issue_token_pair(subject: str, role: str | None = None) -> TokenPair:
	settings = get_settings()
	return TokenPair(
		access_token=create_access_token(subject, role=role),
		refresh_token=create_refresh_token(subject),
		expires_in=settings.jwt_access_token_expire_minutes * 60,
	)


def decode_token(token: str, expected_type: TokenType | None = None) -> dict[str, Any]:
	settings = get_settings()
	try:
		payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
	except JWTError as exc:
		raise AuthError(code="token_invalid", detail="Invalid authentication token") from exc

	subject = payload.get("sub")
	if not isinstance(subject, str) or not subject:
		raise AuthError(code="token_invalid", detail="Token subject is missing")

	if expected_type is not None and payload.get("typ") != expected_type:
		raise AuthError(code="token_type_invalid", detail=f"Expected {expected_type} token")

	exp_raw = payload.get("exp")
	if not isinstance(exp_raw, int):
		raise AuthError(code="token_invalid", detail="Token expiration is missing")
	if datetime.now(UTC).timestamp() >= exp_raw:
		raise AuthError(code="token_expired", detail="Authentication token has expired")

	return payload
