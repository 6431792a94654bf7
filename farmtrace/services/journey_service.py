"""Public tracking lookups: journey by product id or code, purchases by phone."""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.errors import NotFound, ValidationError
from farmtrace.models.enums import ProductStageEnum
from farmtrace.models.product import Product
from farmtrace.models.records import RetailRecord, TransportRecord, WarehouseRecord
from farmtrace.schemas.records import RetailRead, TransportRead, WarehouseRead
from farmtrace.schemas.tracking import (
	JourneyEventRead,
	PartyRead,
	PurchaseListRead,
	PurchaseRead,
	TrackedProduct,
	TrackingResponse,
)
from farmtrace.services.journey import build_journey, last_updated, stage_label


def _party(entity: Any, *, location: str | None = None) -> PartyRead | None:
	if entity is None:
		return None
	return PartyRead(name=getattr(entity, "name", None) or "Unknown", location=location)


def _party_or(entity: Any, fallback: str, *, location: str | None = None) -> PartyRead:
	return _party(entity, location=location) or PartyRead(name=fallback)


class JourneyService:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def track_by_id(self, product_id: uuid.UUID) -> TrackingResponse:
		product = await self._load_product(Product.id == product_id)
		if product is None:
			raise NotFound(f"Product {product_id} not found")
		return await self._track(product)

	async def track_by_code(self, product_code: str) -> TrackingResponse:
		code = product_code.strip()
		if not code:
			raise ValidationError.missing("product_code", "Product code is required")
		product = await self._load_product(Product.product_code == code)
		if product is None:
			raise NotFound(f"Product with code {code} not found")
		return await self._track(product)

	async def purchases_by_phone(self, phone: str) -> PurchaseListRead:
		"""Sold products for ``phone``, newest purchase first."""
		normalized = phone.strip()
		if not normalized:
			raise ValidationError.missing("phone", "Phone number is required")
		rows = await self.db.execute(
			select(Product)
			.where(
				Product.customer_phone == normalized,
				Product.current_stage == ProductStageEnum.sold,
			)
			.order_by(Product.updated_at.desc())
		)
		return PurchaseListRead(items=[self.to_purchase(product) for product in rows.scalars().all()])

	async def _track(self, product: Any) -> TrackingResponse:
		transport = await self._records(TransportRecord, product.id)
		warehouse = await self._records(WarehouseRecord, product.id)
		retail = await self._records(RetailRecord, product.id)
		return self.to_tracking(product, transport, warehouse, retail)

	@staticmethod
	def to_tracking(
		product: Any,
		transport: Sequence[Any],
		warehouse: Sequence[Any],
		retail: Sequence[Any],
	) -> TrackingResponse:
		events = build_journey(product, transport, warehouse, retail)
		farmer = product.farmer
		return TrackingResponse(
			product=TrackedProduct(
				id=product.id,
				product_code=product.product_code,
				name=product.name,
				quantity=product.quantity,
				quality=product.quality,
				harvest_date=product.harvest_date,
				current_stage=product.current_stage,
				farmer=_party(farmer, location=farmer.location if farmer is not None else None),
				transporter=_party(product.assigned_transporter),
				warehouse=_party(product.assigned_warehouse),
				retailer=_party(product.assigned_retailer),
			),
			journey=[JourneyEventRead.model_validate(event) for event in events],
			current_status=stage_label(product.current_stage),
			last_updated=last_updated(product, events),
			transport_records=[TransportRead.model_validate(row) for row in transport],
			warehouse_records=[WarehouseRead.model_validate(row) for row in warehouse],
			retail_records=[RetailRead.model_validate(row) for row in retail],
		)

	@staticmethod
	def to_purchase(product: Any) -> PurchaseRead:
		farmer = product.farmer
		return PurchaseRead(
			id=product.id,
			product_code=product.product_code,
			product_name=product.name,
			quantity=product.quantity,
			harvest_date=product.harvest_date,
			current_stage=product.current_stage,
			purchase_date=product.updated_at,
			farmer=_party_or(farmer, "Unknown", location=farmer.location if farmer is not None else None),
			transporter=_party_or(product.assigned_transporter, "Not assigned"),
			warehouse=_party_or(product.assigned_warehouse, "Not assigned"),
			retailer=_party_or(product.assigned_retailer, "Unknown"),
		)

	async def _load_product(self, condition: Any) -> Product | None:
		rows = await self.db.execute(select(Product).where(condition))
		return rows.scalar_one_or_none()

	async def _records(self, model: Any, product_id: uuid.UUID) -> list[Any]:
		rows = await self.db.execute(
			select(model).where(model.product_id == product_id).order_by(model.created_at.asc(), model.id.asc())
		)
		return list(rows.scalars().all())
