"""Shared pytest fixtures: async test client, fake DB session, fake Redis, grow rows."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from app.auth.dependencies import get_current_user
from app.auth.jwt import create_access_token
from app.database import get_db, run_post_commit_hooks
from app.main import app
from app.models.enums import UserRoleEnum

TEST_USER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")


class FakeResult:
	def __init__(self, rows: list[Any] | None = None) -> None:
		self.rows = rows or []

	def scalar_one_or_none(self) -> Any:
		return self.rows[0] if self.rows else None

	def scalars(self) -> "FakeResult":
		return self

	def all(self) -> list[Any]:
		return list(self.rows)


class FakeAsyncSession:
	def __init__(self) -> None:
		self.commit = AsyncMock()
		self.rollback = AsyncMock()
		self.close = AsyncMock()
		self.execute = AsyncMock(return_value=FakeResult())
		self.flush = AsyncMock()
		self.refresh = AsyncMock()
		self.delete = AsyncMock()
		self.add = MagicMock()
		self.info: dict[str, Any] = {}

	def returning(self, *results: list[Any]) -> None:
		"""Queue ``execute`` results, one row list per call."""
		self.execute.side_effect = [FakeResult(rows) for rows in results]


class FakeRedis:
	def __init__(self) -> None:
		self._values: dict[str, str] = {}
		self._counter: dict[str, int] = {}
		self._sets: dict[str, set[str]] = {}
		self.get = AsyncMock(side_effect=self._get)
		self.setex = AsyncMock(side_effect=self._setex)
		self.incr = AsyncMock(side_effect=self._incr)
		self.expire = AsyncMock(return_value=True)
		self.smembers = AsyncMock(side_effect=self._smembers)
		self.sadd = AsyncMock(side_effect=self._sadd)
		self.ping = AsyncMock(return_value=True)

	async def _get(self, key: str) -> str | None:
		if key in self._counter:
			return str(self._counter[key])
		return self._values.get(key)

	async def _setex(self, key: str, _ttl: int, value: str) -> bool:
		self._values[key] = value
		return True

	async def _incr(self, key: str) -> int:
		value = self._counter.get(key, 0) + 1
		self._counter[key] = value
		return value

	async def _smembers(self, key: str) -> set[str]:
		return set(self._sets.get(key, set()))

	async def _sadd(self, key: str, *members: str) -> int:
		bucket = self._sets.setdefault(key, set())
		added = len(set(members) - bucket)
		bucket.update(members)
		return added


def make_grow_row(**overrides: Any) -> SimpleNamespace:
	"""A stand-in for a ``Grow`` ORM row with sensible defaults."""
	now = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
	values: dict[str, Any] = {
		"id": uuid.uuid4(),
		"user_id": TEST_USER_ID,
		"strain": "Golden Teacher",
		"abbreviation": "GT",
		"grow_type": "Bulk",
		"stage": "Inoculated",
		"status": "Active",
		"stage_dates": {},
		"flushes": [],
		"cost": None,
		"recipe_items": None,
		"extra": {},
		"created_at": now,
		"updated_at": now,
	}
	values.update(overrides)
	return SimpleNamespace(**values)


@pytest.fixture
def fake_db_session() -> FakeAsyncSession:
	"""A lightweight async-session stub for dependency overrides in API tests."""
	return FakeAsyncSession()


@pytest.fixture
def fake_redis() -> FakeRedis:
	return FakeRedis()


@pytest.fixture
def grow_row() -> Callable[..., SimpleNamespace]:
	return make_grow_row


@pytest.fixture
def current_user() -> SimpleNamespace:
	return SimpleNamespace(
		id=TEST_USER_ID,
		role=UserRoleEnum.grower,
		is_active=True,
		email="grower@test.local",
	)


@asynccontextmanager
async def _noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
	yield


@pytest.fixture
async def client(fake_db_session: FakeAsyncSession, current_user: SimpleNamespace) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled and DB/auth dependencies mocked."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session
		await run_post_commit_hooks(fake_db_session)  # type: ignore[arg-type]

	async def override_current_user() -> Any:
		return current_user

	app.dependency_overrides[get_db] = override_get_db
	app.dependency_overrides[get_current_user] = override_current_user
	original_lifespan = app.router.lifespan_context
	app.router.lifespan_context = _noop_lifespan
	app.state.redis = None

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()


@pytest.fixture
async def auth_client(fake_db_session: FakeAsyncSession) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with DB override only (real auth dependencies active)."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session
		await run_post_commit_hooks(fake_db_session)  # type: ignore[arg-type]

	app.dependency_overrides[get_db] = override_get_db
	original_lifespan = app.router.lifespan_context
	app.router.lifespan_context = _noop_lifespan
	app.state.redis = None

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()


@pytest.fixture
def access_token() -> str:
	return create_access_token(str(TEST_USER_ID), expires_minutes=30)


@pytest.fixture
def now_utc() -> datetime:
	return datetime(2026, 6, 15, 12, 0, tzinfo=UTC)
