"""Pydantic schemas for the public tracking and purchase-history surface."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict

from farmtrace.models.enums import ProductStageEnum
from farmtrace.schemas.records import RetailRead, TransportRead, WarehouseRead


class JourneyEventRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	order: int
	stage: str
	status: str
	location: str
	handler: str
	timestamp: datetime | None = None
	notes: str
	storage_location: str | None = None
	storage_type: str | None = None


class PartyRead(BaseModel):
	name: str
	location: str | None = None


class TrackedProduct(BaseModel):
	id: uuid.UUID
	product_code: str
	name: str
	category: str = "Agricultural Product"
	quantity: int
	unit: str = "units"
	quality: str
	harvest_date: date | None = None
	current_stage: ProductStageEnum
	farmer: PartyRead | None = None
	transporter: PartyRead | None = None
	warehouse: PartyRead | None = None
	retailer: PartyRead | None = None


class TrackingResponse(BaseModel):
	product: TrackedProduct
	journey: list[JourneyEventRead]
	current_status: str
	last_updated: datetime | None = None
	transport_records: list[TransportRead]
	warehouse_records: list[WarehouseRead]
	retail_records: list[RetailRead]


class PurchaseRead(BaseModel):
	id: uuid.UUID
	product_code: str
	product_name: str
	quantity: int
	harvest_date: date | None = None
	current_stage: ProductStageEnum
	purchase_date: datetime
	farmer: PartyRead
	transporter: PartyRead
	warehouse: PartyRead
	retailer: PartyRead


class PurchaseListRead(BaseModel):
	items: list[PurchaseRead]
