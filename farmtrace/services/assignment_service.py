"""Role-scoped work queues: what each actor can pick up or is holding."""

from __future__ import annotations

from typing import Any

from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import Select

from farmtrace.models.enums import ProductStageEnum, UserRoleEnum
from farmtrace.models.product import Product
from farmtrace.models.records import RetailRecord, TransportRecord, WarehouseRecord
from farmtrace.models.user import User
from farmtrace.schemas.assignment import FarmerContact, PickupLocation, PickupProduct
from farmtrace.services.journey import stage_label

_PLACEHOLDERS = {
	"name": "Unknown Farmer",
	"location": "Location not specified",
	"address": "Address not specified",
	"pincode": "Pincode not specified",
	"farm_size": "Size not specified",
	"phone": "Phone not specified",
}


def _is_admin(actor: Any) -> bool:
	return UserRoleEnum(actor.role) == UserRoleEnum.admin


def _farmer_field(farmer: Any, name: str) -> str:
	value = getattr(farmer, name, None) if farmer is not None else None
	return value or _PLACEHOLDERS[name]


def to_pickup_product(product: Any) -> PickupProduct:
	"""Pickup view with farm contact details, placeholders where unknown."""
	farmer = product.farmer
	contact = FarmerContact(
		id=farmer.id if farmer is not None else None,
		**{name: _farmer_field(farmer, name) for name in _PLACEHOLDERS},
	)
	return PickupProduct(
		id=product.id,
		product_code=product.product_code,
		product_name=product.name,
		quantity=product.quantity,
		price=product.price,
		quality=product.quality,
		harvest_date=product.harvest_date,
		current_stage=product.current_stage,
		stage_label=stage_label(product.current_stage),
		is_active=product.is_active,
		created_at=product.created_at,
		farmer=contact,
		pickup_location=PickupLocation(
			farm_name=f"{contact.name}'s Farm",
			location=contact.location,
			full_address=contact.address,
			pincode=contact.pincode,
			contact_phone=contact.phone,
		),
	)


class AssignmentService:
	def __init__(self, db: AsyncSession):
		self.db = db

	# ── Transporter ─────────────────────────────────────────────────────────

	async def available_for_pickup(self) -> list[PickupProduct]:
		stmt = self._stage_query(ProductStageEnum.harvested)
		return [to_pickup_product(product) for product in await self._products(stmt)]

	async def assigned_to_transporter(self, actor: Any) -> list[Product]:
		stmt = self._stage_query(ProductStageEnum.in_transport)
		if not _is_admin(actor):
			stmt = stmt.where(Product.assigned_transporter_id == actor.id)
		return await self._products(stmt)

	# ── Warehouse ───────────────────────────────────────────────────────────

	async def available_for_storage(self, actor: Any) -> list[Product]:
		stmt = self._stage_query(ProductStageEnum.in_warehouse)
		if not _is_admin(actor):
			stmt = stmt.where(
				or_(
					Product.assigned_warehouse_id.is_(None),
					Product.assigned_warehouse_id == actor.id,
				)
			)
		return await self._products(stmt)

	async def assigned_to_warehouse(self, actor: Any) -> list[Product]:
		stmt = self._stage_query(ProductStageEnum.in_warehouse)
		if not _is_admin(actor):
			stmt = stmt.where(Product.assigned_warehouse_id == actor.id)
		return await self._products(stmt)

	# ── Retail ──────────────────────────────────────────────────────────────

	async def available_for_retail(self, actor: Any) -> list[Product]:
		"""Dispatched to the actor and not yet on an open listing."""
		open_listing = exists().where(
			RetailRecord.product_id == Product.id,
			RetailRecord.closed_at.is_(None),
		)
		stmt = self._stage_query(ProductStageEnum.in_retail).where(~open_listing)
		if not _is_admin(actor):
			stmt = stmt.where(Product.assigned_retailer_id == actor.id)
		return await self._products(stmt)

	async def assigned_to_retailer(self, actor: Any) -> list[Product]:
		stmt = self._stage_query(ProductStageEnum.in_retail)
		if not _is_admin(actor):
			stmt = stmt.where(Product.assigned_retailer_id == actor.id)
		return await self._products(stmt)

	async def list_retailers(self) -> list[User]:
		rows = await self.db.execute(
			select(User)
			.where(User.role == UserRoleEnum.retailer, User.is_active.is_(True))
			.order_by(User.name.asc())
		)
		return list(rows.scalars().all())

	# ── Record histories ────────────────────────────────────────────────────

	async def transport_records(self, actor: Any) -> list[TransportRecord]:
		return await self._records(TransportRecord, TransportRecord.transporter_id, actor)

	async def warehouse_records(self, actor: Any) -> list[WarehouseRecord]:
		return await self._records(WarehouseRecord, WarehouseRecord.warehouse_staff_id, actor)

	async def retail_records(self, actor: Any) -> list[RetailRecord]:
		return await self._records(RetailRecord, RetailRecord.retailer_id, actor)

	# ── Internals ───────────────────────────────────────────────────────────

	@staticmethod
	def _stage_query(stage: ProductStageEnum) -> Select[tuple[Product]]:
		return (
			select(Product)
			.where(Product.current_stage == stage, Product.is_active.is_(True))
			.order_by(Product.created_at.desc())
		)

	async def _products(self, stmt: Select[tuple[Product]]) -> list[Product]:
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def _records(self, model: Any, owner_column: Any, actor: Any) -> list[Any]:
		stmt = select(model).order_by(model.created_at.desc())
		if not _is_admin(actor):
			stmt = stmt.where(owner_column == actor.id)
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())
