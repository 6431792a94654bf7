"""Stage transition engine: the only writer of ``Product.current_stage``.

Each operation loads the product, asks ``stage_rules`` for a plan, writes the
stage record, then applies the plan as one conditional UPDATE keyed on the
expected stage.  Losing a race shows up as a zero rowcount and becomes a
``Conflict``; the record insert is rolled back with it.  Live events go out
only after the commit.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.config import get_settings
from farmtrace.errors import Conflict, InvalidStageTransition, NotFound, ValidationError
from farmtrace.models.enums import ProductStageEnum, TransportStatusEnum, UserRoleEnum
from farmtrace.models.product import FarmerProfile, Product
from farmtrace.models.records import RetailRecord, TransportRecord, WarehouseRecord
from farmtrace.models.user import User
from farmtrace.schemas.product import ProductCreate
from farmtrace.schemas.records import (
	RetailCreate,
	RetailUpdate,
	SaleRequest,
	TransportComplete,
	TransportCreate,
	TransportUpdate,
	WarehouseCreate,
	WarehouseUpdate,
)
from farmtrace.services import stage_rules
from farmtrace.services.events import EventPublisher

logger = structlog.get_logger("farmtrace.transitions")


def _now() -> datetime:
	return datetime.now(UTC)


def _check_stock(stock: int, product: Any) -> None:
	if stock > product.quantity:
		raise ValidationError(
			f"Stock {stock} exceeds product quantity {product.quantity}",
			errors=[{"field": "stock", "message": "must not exceed product quantity"}],
		)


class TransitionService:
	def __init__(self, db: AsyncSession, publisher: EventPublisher | None = None):
		self.db = db
		self.publisher = publisher or EventPublisher(None)

	# ── Creation ────────────────────────────────────────────────────────────

	async def create_product(self, actor: Any, payload: ProductCreate) -> Product:
		stage_rules.require_actor_role(actor, {UserRoleEnum.farmer}, "create products")
		rows = await self.db.execute(select(FarmerProfile).where(FarmerProfile.user_id == actor.id))
		farmer = rows.scalar_one_or_none()
		if farmer is None:
			raise ValidationError("Farmer profile not found. Please create your farmer profile first.")

		product = Product(
			product_code=stage_rules.generate_product_code(get_settings().product_code_prefix),
			name=payload.name,
			quantity=payload.quantity,
			quality=payload.quality,
			price=payload.price,
			harvest_date=payload.harvest_date,
			current_stage=ProductStageEnum.harvested,
			is_active=True,
			customer_phone=None,
			farmer_id=farmer.id,
			assigned_transporter_id=None,
			assigned_warehouse_id=None,
			assigned_retailer_id=None,
		)
		stage_rules.ensure_consistent(stage_rules.snapshot(product))
		self.db.add(product)
		await self._commit()
		await self.db.refresh(product)
		await self._announce("product_created", product, actor)
		return product

	# ── Transport ───────────────────────────────────────────────────────────

	async def accept_pickup(self, actor: Any, payload: TransportCreate) -> TransportRecord:
		product = await self._get_product(payload.product_id)
		plan = stage_rules.plan_pickup(product, actor)

		record = TransportRecord(
			product_id=product.id,
			transporter_id=actor.id,
			from_location=payload.from_location,
			to_location=payload.to_location,
			status=TransportStatusEnum.in_transit,
			date=payload.date or _now(),
		)
		self.db.add(record)
		await self._flush()
		await self._apply(product, plan)
		await self._commit()
		await self._reload(product, record)
		await self._announce("transport_started", product, actor, record_id=record.id)
		return record

	async def complete_transport(
		self,
		actor: Any,
		record_id: uuid.UUID,
		payload: TransportComplete | None = None,
	) -> TransportRecord:
		record = await self._get_transport(record_id)
		product = await self._get_product(record.product_id)
		warehouse_id = payload.warehouse_id if payload is not None else None
		if warehouse_id is not None:
			await self._require_user(warehouse_id, UserRoleEnum.warehouse, "Warehouse")
		plan = stage_rules.plan_delivery(product, record, actor, warehouse_id)

		record.status = TransportStatusEnum.delivered
		await self._apply(product, plan)
		await self._commit()
		await self._reload(product, record)
		await self._announce("transport_completed", product, actor, record_id=record.id)
		return record

	async def update_transport(self, actor: Any, record_id: uuid.UUID, payload: TransportUpdate) -> TransportRecord:
		record = await self._get_transport(record_id)
		stage_rules.require_record_owner(actor, record.transporter_id, "Transport entry")
		if TransportStatusEnum(record.status) == TransportStatusEnum.delivered:
			raise InvalidStageTransition("Delivered transport legs cannot be edited")
		for name, value in payload.model_dump(exclude_unset=True).items():
			if value is not None:
				setattr(record, name, value)
		await self._commit()
		await self.db.refresh(record)
		return record

	# ── Warehouse ───────────────────────────────────────────────────────────

	async def store_product(self, actor: Any, payload: WarehouseCreate) -> WarehouseRecord:
		product = await self._get_product(payload.product_id)
		plan = stage_rules.plan_intake(product, actor)

		record = WarehouseRecord(
			product_id=product.id,
			warehouse_staff_id=actor.id,
			storage_location=payload.storage_location,
			temperature=payload.temperature,
			stored_date=payload.stored_date or _now(),
		)
		self.db.add(record)
		await self._flush()
		await self._apply(product, plan)
		await self._commit()
		await self._reload(product, record)
		await self._announce("warehouse_stored", product, actor, record_id=record.id)
		return record

	async def update_warehouse(self, actor: Any, record_id: uuid.UUID, payload: WarehouseUpdate) -> WarehouseRecord:
		record = await self._get_warehouse(record_id)
		stage_rules.require_record_owner(actor, record.warehouse_staff_id, "Warehouse entry")
		for name, value in payload.model_dump(exclude_unset=True).items():
			if value is not None:
				setattr(record, name, value)
		await self._commit()
		await self.db.refresh(record)
		return record

	async def dispatch_product(
		self,
		actor: Any,
		product_id: uuid.UUID,
		retailer_id: uuid.UUID | None,
		fallback_warehouse_id: uuid.UUID | None = None,
	) -> Product:
		product = await self._get_product(product_id)
		if retailer_id is not None:
			await self._require_user(retailer_id, UserRoleEnum.retailer, "Retailer")
		if fallback_warehouse_id is None and UserRoleEnum(actor.role) == UserRoleEnum.admin:
			fallback_warehouse_id = await self._latest_warehouse_staff(product.id)
		plan = stage_rules.plan_dispatch(product, actor, retailer_id, fallback_warehouse_id)

		await self._apply(product, plan)
		await self._commit()
		await self.db.refresh(product)
		await self._announce("warehouse_dispatched", product, actor, retailer_id=retailer_id)
		return product

	async def dispatch_record(self, actor: Any, record_id: uuid.UUID, retailer_id: uuid.UUID | None) -> Product:
		record = await self._get_warehouse(record_id)
		stage_rules.require_record_owner(actor, record.warehouse_staff_id, "Warehouse entry")
		return await self.dispatch_product(actor, record.product_id, retailer_id, record.warehouse_staff_id)

	# ── Retail ──────────────────────────────────────────────────────────────

	async def list_for_sale(self, actor: Any, payload: RetailCreate) -> RetailRecord:
		product = await self._get_product(payload.product_id)
		plan = stage_rules.plan_listing(product, actor)
		stock = payload.stock if payload.stock is not None else product.quantity
		_check_stock(stock, product)
		if await self._open_listing(product.id) is not None:
			raise Conflict(f"Product {product.id} already has an open retail listing")

		record = RetailRecord(
			product_id=product.id,
			retailer_id=actor.id,
			shop_name=payload.shop_name,
			selling_price=payload.selling_price,
			stock=stock,
			sold_quantity=0,
		)
		self.db.add(record)
		await self._flush()
		await self._apply(product, plan)
		await self._commit()
		await self._reload(product, record)
		await self._announce("retail_listed", product, actor, record_id=record.id)
		return record

	async def update_retail(self, actor: Any, record_id: uuid.UUID, payload: RetailUpdate) -> RetailRecord:
		record = await self._get_retail(record_id)
		stage_rules.require_record_owner(actor, record.retailer_id, "Retail entry")
		if record.closed_at is not None:
			raise InvalidStageTransition("Closed retail listings cannot be edited")
		product = await self._get_product(record.product_id)
		stage_rules.require_stage(product, ProductStageEnum.in_retail, "edit listings of")

		values = {name: value for name, value in payload.model_dump(exclude_unset=True).items() if value is not None}
		if "stock" in values:
			_check_stock(values["stock"], product)
		if not values:
			return record

		result = await self.db.execute(
			update(RetailRecord)
			.where(RetailRecord.id == record.id, RetailRecord.closed_at.is_(None))
			.values(**values)
			.execution_options(synchronize_session=False)
		)
		if result.rowcount != 1:
			await self.db.rollback()
			raise Conflict(f"Retail listing {record.id} closed while the edit was processed")
		await self._commit()
		await self.db.refresh(record)
		return record

	async def sell(self, actor: Any, record_id: uuid.UUID, payload: SaleRequest) -> RetailRecord:
		record = await self._get_retail(record_id)
		product = await self._get_product(record.product_id)
		plan, quantity = stage_rules.plan_sale(product, record, actor, payload.customer_phone, payload.quantity)

		stock_update = (
			update(RetailRecord)
			.where(
				RetailRecord.id == record.id,
				RetailRecord.stock == record.stock,
				RetailRecord.closed_at.is_(None),
			)
			.values(
				stock=RetailRecord.stock - quantity,
				sold_quantity=RetailRecord.sold_quantity + quantity,
				customer_phone=plan.values["customer_phone"],
				closed_at=func.now(),
			)
			.execution_options(synchronize_session=False)
		)
		result = await self.db.execute(stock_update)
		if result.rowcount != 1:
			await self.db.rollback()
			raise Conflict(f"Retail listing {record.id} changed while the sale was processed; re-fetch and retry")
		await self._apply(product, plan)
		await self._commit()
		await self._reload(product, record)
		await self._announce("product_sold", product, actor, record_id=record.id, quantity=quantity)
		return record

	# ── Internals ───────────────────────────────────────────────────────────

	async def _apply(self, product: Product, plan: stage_rules.StagePlan) -> None:
		conditions = [
			Product.id == product.id,
			Product.current_stage == plan.expected_stage,
			Product.is_active.is_(True),
		]
		for name, allowed in plan.guards.items():
			column = getattr(Product, name)
			conditions.append(or_(*(column.is_(None) if value is None else column == value for value in allowed)))

		stmt = (
			update(Product)
			.where(*conditions)
			.values(**plan.values)
			.execution_options(synchronize_session=False)
		)
		result = await self.db.execute(stmt)
		if result.rowcount != 1:
			await self.db.rollback()
			logger.info(
				"stage_transition_conflict",
				product_id=str(product.id),
				expected_stage=plan.expected_stage.value,
				target_stage=plan.target_stage.value,
			)
			raise Conflict(f"Product {product.id} changed while the request was processed; re-fetch and retry")

	async def _flush(self) -> None:
		try:
			await self.db.flush()
		except IntegrityError as exc:
			await self.db.rollback()
			raise Conflict("Write conflicts with existing data") from exc

	async def _commit(self) -> None:
		try:
			await self.db.commit()
		except IntegrityError as exc:
			await self.db.rollback()
			raise Conflict("Write conflicts with existing data") from exc

	async def _reload(self, product: Product, record: Any) -> None:
		await self.db.refresh(product)
		await self.db.refresh(record)

	async def _announce(self, event_type: str, product: Product, actor: Any, **extra: Any) -> None:
		logger.info(
			"stage_transition",
			event_type=event_type,
			product_id=str(product.id),
			product_code=product.product_code,
			stage=str(product.current_stage),
			actor_id=str(actor.id),
			actor_role=str(actor.role),
		)
		await self.publisher.publish(event_type, product, actor_id=actor.id, **extra)

	async def _get_product(self, product_id: uuid.UUID) -> Product:
		rows = await self.db.execute(select(Product).where(Product.id == product_id))
		product = rows.scalar_one_or_none()
		if product is None:
			raise NotFound(f"Product {product_id} not found")
		return product

	async def _get_transport(self, record_id: uuid.UUID) -> TransportRecord:
		rows = await self.db.execute(select(TransportRecord).where(TransportRecord.id == record_id))
		record = rows.scalar_one_or_none()
		if record is None:
			raise NotFound(f"Transport entry {record_id} not found")
		return record

	async def _get_warehouse(self, record_id: uuid.UUID) -> WarehouseRecord:
		rows = await self.db.execute(select(WarehouseRecord).where(WarehouseRecord.id == record_id))
		record = rows.scalar_one_or_none()
		if record is None:
			raise NotFound(f"Warehouse entry {record_id} not found")
		return record

	async def _get_retail(self, record_id: uuid.UUID) -> RetailRecord:
		rows = await self.db.execute(select(RetailRecord).where(RetailRecord.id == record_id))
		record = rows.scalar_one_or_none()
		if record is None:
			raise NotFound(f"Retail entry {record_id} not found")
		return record

	async def _require_user(self, user_id: uuid.UUID, role: UserRoleEnum, label: str) -> User:
		rows = await self.db.execute(select(User).where(User.id == user_id))
		user = rows.scalar_one_or_none()
		if user is None:
			raise NotFound(f"{label} {user_id} not found")
		if UserRoleEnum(user.role) != role or not user.is_active:
			raise ValidationError(
				f"User {user_id} is not an active {role.value}",
				errors=[{"field": f"{role.value}_id", "message": f"must reference an active {role.value}"}],
			)
		return user

	async def _latest_warehouse_staff(self, product_id: uuid.UUID) -> uuid.UUID | None:
		rows = await self.db.execute(
			select(WarehouseRecord.warehouse_staff_id)
			.where(WarehouseRecord.product_id == product_id)
			.order_by(WarehouseRecord.created_at.desc())
			.limit(1)
		)
		return rows.scalar_one_or_none()

	async def _open_listing(self, product_id: uuid.UUID) -> uuid.UUID | None:
		rows = await self.db.execute(
			select(RetailRecord.id)
			.where(RetailRecord.product_id == product_id, RetailRecord.closed_at.is_(None))
			.limit(1)
		)
		return rows.scalar_one_or_none()
