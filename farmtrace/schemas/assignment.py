"""Pydantic schemas for role-scoped work queues."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel

from farmtrace.models.enums import ProductStageEnum
from farmtrace.schemas.product import UserSummary


class FarmerContact(BaseModel):
	id: uuid.UUID | None = None
	name: str
	location: str
	address: str
	pincode: str
	farm_size: str
	phone: str


class PickupLocation(BaseModel):
	farm_name: str
	location: str
	full_address: str
	pincode: str
	contact_phone: str


class PickupProduct(BaseModel):
	id: uuid.UUID
	product_code: str
	product_name: str
	quantity: int
	price: float
	quality: str
	harvest_date: date | None = None
	current_stage: ProductStageEnum
	stage_label: str
	is_active: bool
	created_at: datetime
	farmer: FarmerContact
	pickup_location: PickupLocation


class PickupListRead(BaseModel):
	items: list[PickupProduct]


class RetailerListRead(BaseModel):
	items: list[UserSummary]
