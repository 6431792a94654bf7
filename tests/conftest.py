"""Shared pytest fixtures: async test client, fake session/Redis, pipeline entity factory."""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime, timedelta
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from farmtrace.auth.dependencies import get_current_user
from farmtrace.auth.jwt import create_access_token
from farmtrace.database import get_db
from farmtrace.main import app
from farmtrace.models.enums import ProductStageEnum, TransportStatusEnum, UserRoleEnum


class FakeAsyncSession:
	def __init__(self) -> None:
		self.commit = AsyncMock()
		self.rollback = AsyncMock()
		self.close = AsyncMock()
		self.execute = AsyncMock()
		self.flush = AsyncMock()
		self.refresh = AsyncMock()
		self.delete = AsyncMock()
		self.add = MagicMock()


class FakeResult:
	"""Stands in for both ORM ``Result`` reads and Core UPDATE cursor results."""

	def __init__(self, value: Any = None, items: list[Any] | None = None, rowcount: int = 1) -> None:
		self.value = value
		self.items = items if items is not None else ([] if value is None else [value])
		self.rowcount = rowcount

	def scalar_one_or_none(self) -> Any:
		return self.value

	def scalar(self) -> Any:
		return self.value

	def scalars(self) -> FakeResult:
		return self

	def all(self) -> list[Any]:
		return list(self.items)


class FakePubSub:
	def __init__(self, payloads: list[dict[str, Any]]) -> None:
		self.payloads = payloads
		self.index = 0
		self.subscribed_channel: str | None = None
		self.unsubscribed_channel: str | None = None
		self.closed = False

	async def subscribe(self, channel: str) -> None:
		self.subscribed_channel = channel

	async def get_message(self, ignore_subscribe_messages: bool, timeout: float) -> dict[str, Any] | None:
		if self.index >= len(self.payloads):
			return None
		message = self.payloads[self.index]
		self.index += 1
		return message

	async def unsubscribe(self, channel: str) -> None:
		self.unsubscribed_channel = channel

	async def close(self) -> None:
		self.closed = True


class FakeRedis:
	def __init__(self, payloads: list[dict[str, Any]] | None = None) -> None:
		self.payloads = payloads or []
		self.publish = AsyncMock()
		self._counter: dict[str, int] = {}
		self.incr = AsyncMock(side_effect=self._incr)
		self.expire = AsyncMock(return_value=True)
		self.ping = AsyncMock(return_value=True)
		self.last_pubsub: FakePubSub | None = None

	async def _incr(self, key: str) -> int:
		value = self._counter.get(key, 0) + 1
		self._counter[key] = value
		return value

	def pubsub(self) -> FakePubSub:
		self.last_pubsub = FakePubSub(self.payloads)
		return self.last_pubsub


class PipelineFactory:
	"""Builds SimpleNamespace users, products and stage records shaped like the ORM rows."""

	def __init__(self) -> None:
		self.now = datetime(2026, 3, 1, 8, 0, tzinfo=UTC)
		self.users: dict[uuid.UUID, SimpleNamespace] = {}

	def result(self, value: Any = None, items: list[Any] | None = None, rowcount: int = 1) -> FakeResult:
		return FakeResult(value=value, items=items, rowcount=rowcount)

	def user(self, role: UserRoleEnum, name: str | None = None) -> SimpleNamespace:
		user = SimpleNamespace(
			id=uuid.uuid4(),
			name=name or f"{role.value.title()} One",
			email=f"{role.value}-{uuid.uuid4().hex[:6]}@test.local",
			role=role,
			is_active=True,
			created_at=self.now,
		)
		self.users[user.id] = user
		return user

	def farmer_profile(self, user: SimpleNamespace | None = None, /, **overrides: Any) -> SimpleNamespace:
		owner = user or self.user(UserRoleEnum.farmer, "Asha Patel")
		fields = {
			"id": uuid.uuid4(),
			"user_id": owner.id,
			"name": owner.name,
			"location": "Nashik",
			"address": "12 Orchard Road",
			"pincode": "422001",
			"farm_size": "5 acres",
			"phone": "9000000001",
		}
		fields.update(overrides)
		return SimpleNamespace(**fields)

	def product(
		self,
		stage: ProductStageEnum = ProductStageEnum.harvested,
		*,
		farmer: SimpleNamespace | None = None,
		transporter: SimpleNamespace | None = None,
		warehouse: SimpleNamespace | None = None,
		retailer: SimpleNamespace | None = None,
		**overrides: Any,
	) -> SimpleNamespace:
		profile = farmer if farmer is not None else self.farmer_profile()
		fields = {
			"id": uuid.uuid4(),
			"product_code": "PC1767225600000AB12C",
			"name": "Tomatoes",
			"quantity": 100,
			"quality": "Good",
			"price": 25.0,
			"harvest_date": date(2026, 2, 28),
			"current_stage": stage,
			"is_active": stage != ProductStageEnum.sold,
			"customer_phone": None,
			"farmer_id": profile.id if profile is not None else uuid.uuid4(),
			"farmer": profile,
			"assigned_transporter_id": transporter.id if transporter else None,
			"assigned_transporter": transporter,
			"assigned_warehouse_id": warehouse.id if warehouse else None,
			"assigned_warehouse": warehouse,
			"assigned_retailer_id": retailer.id if retailer else None,
			"assigned_retailer": retailer,
			"created_at": self.now,
			"updated_at": self.now,
		}
		fields.update(overrides)
		return SimpleNamespace(**fields)

	def transport(self, product: Any, transporter: Any, **overrides: Any) -> SimpleNamespace:
		fields = {
			"id": uuid.uuid4(),
			"product_id": product.id,
			"transporter_id": transporter.id,
			"from_location": "Nashik farm gate",
			"to_location": "Pune Cold Store",
			"status": TransportStatusEnum.in_transit,
			"date": self.now + timedelta(hours=1),
			"created_at": self.now + timedelta(hours=1),
			"updated_at": self.now + timedelta(hours=1),
			"product": product,
			"transporter": transporter,
		}
		fields.update(overrides)
		return SimpleNamespace(**fields)

	def warehouse_record(self, product: Any, staff: Any, **overrides: Any) -> SimpleNamespace:
		fields = {
			"id": uuid.uuid4(),
			"product_id": product.id,
			"warehouse_staff_id": staff.id,
			"storage_location": "A-3",
			"temperature": "Cold",
			"stored_date": self.now + timedelta(hours=6),
			"created_at": self.now + timedelta(hours=6),
			"updated_at": self.now + timedelta(hours=6),
			"product": product,
			"warehouse_staff": staff,
		}
		fields.update(overrides)
		return SimpleNamespace(**fields)

	def retail_record(self, product: Any, retailer: Any, **overrides: Any) -> SimpleNamespace:
		fields = {
			"id": uuid.uuid4(),
			"product_id": product.id,
			"retailer_id": retailer.id,
			"shop_name": "Fresh Mart",
			"selling_price": 40.0,
			"stock": product.quantity,
			"sold_quantity": 0,
			"customer_phone": None,
			"closed_at": None,
			"created_at": self.now + timedelta(days=1),
			"updated_at": self.now + timedelta(days=1),
			"product": product,
			"retailer": retailer,
		}
		fields.update(overrides)
		return SimpleNamespace(**fields)

	def apply(self, product: Any, plan: Any) -> Any:
		"""Write a plan's values onto ``product`` the way a committed UPDATE would."""
		for name, value in plan.values.items():
			setattr(product, name, value)
			if name.startswith("assigned_") and name.endswith("_id"):
				setattr(product, name[: -len("_id")], self.users.get(value))
		return product


@pytest.fixture
def factory() -> PipelineFactory:
	return PipelineFactory()


@pytest.fixture
def fake_db_session() -> FakeAsyncSession:
	"""A lightweight async-session stub for dependency overrides in API tests."""
	return FakeAsyncSession()


@pytest.fixture
def fake_redis() -> FakeRedis:
	"""Reusable fake Redis client with async publish and pubsub behavior."""
	return FakeRedis()


@asynccontextmanager
async def _noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
	yield


@pytest.fixture
async def client(fake_db_session: FakeAsyncSession) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled, DB mocked and an admin caller."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session

	admin = SimpleNamespace(
		id=uuid.uuid4(),
		name="Admin",
		email="admin@test.local",
		role=UserRoleEnum.admin,
		is_active=True,
		created_at=datetime.now(UTC),
	)

	async def override_current_user() -> Any:
		return admin

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
	app.state.redis = None


@pytest.fixture
def act_as(factory: PipelineFactory) -> Callable[[UserRoleEnum], SimpleNamespace]:
	"""Swap the authenticated caller for a fresh user with ``role``."""

	def _act_as(role: UserRoleEnum) -> SimpleNamespace:
		user = factory.user(role)

		async def override_current_user() -> Any:
			return user

		app.dependency_overrides[get_current_user] = override_current_user
		return user

	return _act_as


@pytest.fixture
async def auth_client(fake_db_session: FakeAsyncSession) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with DB override only (real auth dependencies active)."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session

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
def auth_user_id() -> uuid.UUID:
	return uuid.UUID("11111111-1111-1111-1111-111111111111")


@pytest.fixture
def access_token(auth_user_id: uuid.UUID) -> str:
	return create_access_token(str(auth_user_id), role=UserRoleEnum.retailer.value, expires_minutes=30)
