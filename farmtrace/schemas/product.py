"""Pydantic request/response schemas for farmer profiles and products."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field

from farmtrace.models.enums import ProductStageEnum, UserRoleEnum
from farmtrace.services.journey import stage_label


class FarmerProfileUpdate(BaseModel):
	name: str | None = Field(default=None, min_length=1, max_length=255)
	location: str | None = Field(default=None, max_length=200)
	address: str | None = Field(default=None, max_length=500)
	pincode: str | None = Field(default=None, pattern=r"^\d{6}$")
	farm_size: str | None = Field(default=None, max_length=100)
	phone: str | None = Field(default=None, pattern=r"^\d{10}$")


class FarmerProfileRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	user_id: uuid.UUID
	name: str | None = None
	location: str | None = None
	address: str | None = None
	pincode: str | None = None
	farm_size: str | None = None
	phone: str | None = None


class FarmerAccountRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	name: str
	email: str
	role: UserRoleEnum
	created_at: datetime


class FarmerDirectoryRead(FarmerProfileRead):
	user: FarmerAccountRead | None = None


class FarmerListRead(BaseModel):
	items: list[FarmerDirectoryRead]


class UserSummary(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	name: str
	role: UserRoleEnum


class ProductCreate(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	quantity: int = Field(ge=1)
	quality: str = Field(default="Good", min_length=1, max_length=50)
	price: float = Field(default=0.0, ge=0)
	harvest_date: date | None = None


class ProductUpdate(BaseModel):
	name: str | None = Field(default=None, min_length=1, max_length=255)
	quantity: int | None = Field(default=None, ge=1)
	quality: str | None = Field(default=None, min_length=1, max_length=50)
	price: float | None = Field(default=None, ge=0)
	harvest_date: date | None = None


class ProductRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	product_code: str
	name: str
	quantity: int
	quality: str
	price: float
	harvest_date: date | None = None
	current_stage: ProductStageEnum
	is_active: bool
	customer_phone: str | None = None
	farmer: FarmerProfileRead | None = None
	assigned_transporter: UserSummary | None = None
	assigned_warehouse: UserSummary | None = None
	assigned_retailer: UserSummary | None = None
	created_at: datetime
	updated_at: datetime

	@computed_field  # type: ignore[prop-decorator]
	@property
	def stage_label(self) -> str:
		return stage_label(self.current_stage)


class ProductListRead(BaseModel):
	items: list[ProductRead]
