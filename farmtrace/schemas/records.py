"""Pydantic schemas for transport legs, warehouse entries and retail listings."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from farmtrace.models.enums import TransportStatusEnum
from farmtrace.schemas.product import ProductRead, UserSummary

# ── Transport ───────────────────────────────────────────────────────────────


class TransportCreate(BaseModel):
	product_id: uuid.UUID
	from_location: str = Field(min_length=1, max_length=255)
	to_location: str = Field(min_length=1, max_length=255)
	date: datetime | None = None


class TransportUpdate(BaseModel):
	from_location: str | None = Field(default=None, min_length=1, max_length=255)
	to_location: str | None = Field(default=None, min_length=1, max_length=255)
	date: datetime | None = None


class TransportComplete(BaseModel):
	warehouse_id: uuid.UUID | None = None


class TransportRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	product_id: uuid.UUID
	transporter_id: uuid.UUID
	from_location: str
	to_location: str
	status: TransportStatusEnum
	date: datetime
	created_at: datetime
	updated_at: datetime


class TransportDetailRead(TransportRead):
	product: ProductRead
	transporter: UserSummary | None = None


class TransportListRead(BaseModel):
	items: list[TransportDetailRead]


# ── Warehouse ───────────────────────────────────────────────────────────────


class WarehouseCreate(BaseModel):
	product_id: uuid.UUID
	storage_location: str = Field(min_length=1, max_length=255)
	temperature: str = Field(default="Normal", min_length=1, max_length=50)
	stored_date: datetime | None = None


class WarehouseUpdate(BaseModel):
	storage_location: str | None = Field(default=None, min_length=1, max_length=255)
	temperature: str | None = Field(default=None, min_length=1, max_length=50)
	stored_date: datetime | None = None


class DispatchRequest(BaseModel):
	retailer_id: uuid.UUID | None = None


class WarehouseRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	product_id: uuid.UUID
	warehouse_staff_id: uuid.UUID
	storage_location: str
	temperature: str
	stored_date: datetime
	created_at: datetime
	updated_at: datetime


class WarehouseDetailRead(WarehouseRead):
	product: ProductRead
	warehouse_staff: UserSummary | None = None


class WarehouseListRead(BaseModel):
	items: list[WarehouseDetailRead]


# ── Retail ──────────────────────────────────────────────────────────────────


class RetailCreate(BaseModel):
	product_id: uuid.UUID
	shop_name: str = Field(min_length=1, max_length=255)
	selling_price: float = Field(ge=0)
	stock: int | None = Field(default=None, ge=1)


class RetailUpdate(BaseModel):
	shop_name: str | None = Field(default=None, min_length=1, max_length=255)
	selling_price: float | None = Field(default=None, ge=0)
	stock: int | None = Field(default=None, ge=0)


class SaleRequest(BaseModel):
	customer_phone: str | None = Field(default=None, max_length=20)
	quantity: int | None = Field(default=None, ge=1)


class RetailRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	product_id: uuid.UUID
	retailer_id: uuid.UUID
	shop_name: str
	selling_price: float
	stock: int
	sold_quantity: int
	customer_phone: str | None = None
	closed_at: datetime | None = None
	created_at: datetime
	updated_at: datetime


class RetailDetailRead(RetailRead):
	product: ProductRead
	retailer: UserSummary | None = None


class RetailListRead(BaseModel):
	items: list[RetailDetailRead]
