"""Analytics summary service: loads grow and recipe documents and caches the report in Redis."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

import structlog
from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.schemas.analytics import AnalyticsQuery, AnalyticsReport
from app.services import grow_analytics
from app.services.grow_service import GrowService
from app.services.supply_service import SupplyService
from app.services.versioning import grows_version_key

_logger = structlog.get_logger("mycotrack.analytics")


def _filters_token(query: AnalyticsQuery) -> str:
	return ":".join(
		[
			query.strain or "*",
			query.date_from.isoformat() if query.date_from else "*",
			query.date_to.isoformat() if query.date_to else "*",
			"all" if query.show_all else "active",
		]
	)


class AnalyticsService:
	def __init__(self, db: AsyncSession, redis_client: Redis | None = None):
		self.db = db
		self.redis_client = redis_client

	async def get_summary(self, user_id: uuid.UUID, query: AnalyticsQuery) -> AnalyticsReport:
		cache_key = await self._cache_key(user_id, query)

		if cache_key is not None:
			cached = await self._read_cache(cache_key)
			if cached is not None:
				return cached

		documents = await GrowService(self.db).list_documents(user_id)
		recipes = await SupplyService(self.db).recipe_documents(user_id)
		report = grow_analytics.build_report(
			documents,
			grow_filter=grow_analytics.GrowFilter.from_query(query),
			show_all=query.show_all,
			recipes=recipes,
			now=datetime.now(UTC),
		)

		if cache_key is not None:
			await self._write_cache(cache_key, report)
		return report

	async def _cache_key(self, user_id: uuid.UUID, query: AnalyticsQuery) -> str | None:
		if self.redis_client is None:
			return None
		try:
			version = await self.redis_client.get(grows_version_key(user_id))
		except RedisError as exc:
			_logger.warning("analytics_cache_unavailable", error=str(exc))
			return None
		return f"user:{user_id}:analytics:v{version or 0}:{_filters_token(query)}"

	async def _read_cache(self, cache_key: str) -> AnalyticsReport | None:
		assert self.redis_client is not None
		try:
			payload = await self.redis_client.get(cache_key)
		except RedisError as exc:
			_logger.warning("analytics_cache_read_failed", error=str(exc))
			return None
		if payload is None:
			return None
		try:
			report = AnalyticsReport.model_validate_json(payload)
		except ValidationError:
			_logger.warning("analytics_cache_corrupt", cache_key=cache_key)
			return None
		return report.model_copy(update={"cached": True})

	async def _write_cache(self, cache_key: str, report: AnalyticsReport) -> None:
		assert self.redis_client is not None
		try:
			await self.redis_client.setex(
				cache_key,
				get_settings().analytics_cache_ttl_seconds,
				report.model_dump_json(),
			)
		except RedisError as exc:
			_logger.warning("analytics_cache_write_failed", error=str(exc))
