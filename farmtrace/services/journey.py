"""Journey reconstruction: turns a product and its stage records into a timeline.

Pure functions over already-loaded entities; ``JourneyService`` does the
loading.  This module owns the canonical stage → display label table, every
other consumer (assignment views, status badges, live events) imports it
from here.

Events are numbered in pipeline order as they are appended.  Timestamps are
carried for display only and never used for ordering, since records from
different collections can be backfilled or skewed.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from farmtrace.models.enums import ProductStageEnum

STAGE_LABELS: dict[ProductStageEnum, str] = {
	ProductStageEnum.harvested: "Harvested",
	ProductStageEnum.in_transport: "In Transport",
	ProductStageEnum.in_warehouse: "In Warehouse",
	ProductStageEnum.in_retail: "In Retail",
	ProductStageEnum.sold: "Sold",
}
UNKNOWN_STAGE_LABEL = "Unknown Status"

_WAREHOUSE_VISIBLE = frozenset(
	{ProductStageEnum.in_warehouse, ProductStageEnum.in_retail, ProductStageEnum.sold}
)
_RETAIL_VISIBLE = frozenset({ProductStageEnum.in_retail, ProductStageEnum.sold})


def stage_label(stage: Any) -> str:
	try:
		return STAGE_LABELS[ProductStageEnum(stage)]
	except ValueError:
		return UNKNOWN_STAGE_LABEL


@dataclass(frozen=True, slots=True)
class JourneyEvent:
	order: int
	stage: str
	status: str
	location: str
	handler: str
	timestamp: datetime | None
	notes: str
	storage_location: str | None = None
	storage_type: str | None = None


def _name_or(entity: Any, fallback: str) -> str:
	if entity is None:
		return fallback
	return getattr(entity, "name", None) or fallback


def _warehouse_notes(warehouse_name: str, record: Any) -> str:
	notes = f"Stored at {warehouse_name}"
	if record is None:
		return notes
	details = []
	if record.storage_location:
		details.append(f"Shelf: {record.storage_location}")
	if record.temperature:
		details.append(f"Storage Type: {record.temperature}")
	if details:
		notes += f" ({', '.join(details)})"
	return notes


def build_journey(
	product: Any,
	transport_records: Sequence[Any] = (),
	warehouse_records: Sequence[Any] = (),
	retail_records: Sequence[Any] = (),
) -> list[JourneyEvent]:
	"""Assemble the timeline for ``product``.

	Record sequences must be ordered oldest first.  Only the first warehouse
	record feeds the storage notes, even when a product was shelved more
	than once.
	"""
	events: list[JourneyEvent] = []

	def emit(**fields: Any) -> None:
		events.append(JourneyEvent(order=len(events) + 1, **fields))

	stage = ProductStageEnum(product.current_stage)
	farmer = product.farmer
	farmer_name = _name_or(farmer, "")
	emit(
		stage="Harvested",
		status="Harvested",
		location=(farmer.location if farmer is not None and farmer.location else "Farm"),
		handler=farmer_name or "Farmer",
		timestamp=product.created_at,
		notes=f"Product harvested by {farmer_name or 'farmer'}",
	)

	if product.assigned_transporter_id is not None:
		transporter_name = _name_or(product.assigned_transporter, "")
		first_leg = transport_records[0] if transport_records else None
		destination = _name_or(product.assigned_warehouse, "")
		if not destination:
			destination = first_leg.to_location if first_leg is not None and first_leg.to_location else "warehouse"
		emit(
			stage="In Transport",
			status="In Transit" if stage == ProductStageEnum.in_transport else "Delivered",
			location=f"En route to {destination}",
			handler=transporter_name or "Transporter",
			timestamp=first_leg.date if first_leg is not None else product.updated_at,
			notes=f"Transported by {transporter_name or 'transporter'}",
		)

	if product.assigned_warehouse_id is not None and stage in _WAREHOUSE_VISIBLE:
		warehouse_name = _name_or(product.assigned_warehouse, "")
		storage = warehouse_records[0] if warehouse_records else None
		emit(
			stage="In Warehouse",
			status="In Storage" if stage == ProductStageEnum.in_warehouse else "Dispatched",
			location=warehouse_name or "Warehouse",
			handler="Warehouse Staff",
			timestamp=(storage.stored_date if storage is not None and storage.stored_date else product.updated_at),
			notes=_warehouse_notes(warehouse_name or "warehouse", storage),
			storage_location=storage.storage_location if storage is not None else None,
			storage_type=storage.temperature if storage is not None else None,
		)

	if product.assigned_retailer_id is not None and stage in _RETAIL_VISIBLE:
		retailer_name = _name_or(product.assigned_retailer, "")
		listing = retail_records[0] if retail_records else None
		shop = listing.shop_name if listing is not None and listing.shop_name else retailer_name
		emit(
			stage="In Retail",
			status="Sold" if stage == ProductStageEnum.sold else "Available for Sale",
			location=shop or "Retail Store",
			handler=retailer_name or "Retailer",
			timestamp=listing.created_at if listing is not None else product.updated_at,
			notes=f"Available at {shop or 'retail store'}",
		)

	if stage == ProductStageEnum.sold and product.customer_phone:
		emit(
			stage="Sold",
			status="Sold to Customer",
			location="Customer",
			handler="Customer",
			timestamp=product.updated_at,
			notes=f"Sold to customer ({product.customer_phone})",
		)

	return events


def last_updated(product: Any, events: Sequence[JourneyEvent]) -> datetime | None:
	if events and events[-1].timestamp is not None:
		return events[-1].timestamp
	return product.updated_at
