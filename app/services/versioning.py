"""Per-user data version counter that keys the analytics cache."""

from __future__ import annotations

import uuid

import structlog
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import on_commit

_logger = structlog.get_logger("mycotrack.versioning")


def grows_version_key(user_id: uuid.UUID) -> str:
	return f"user:{user_id}:grows:version"


def schedule_version_bump(db: AsyncSession, redis_client: Redis | None, user_id: uuid.UUID) -> None:
	"""Bump the per-user version once ``db`` commits; a rollback drops the bump."""
	if redis_client is None:
		return

	async def bump() -> None:
		try:
			await redis_client.incr(grows_version_key(user_id))
		except RedisError as exc:
			_logger.warning("grows_version_bump_failed", user_id=str(user_id), error=str(exc))

	on_commit(db, bump)
