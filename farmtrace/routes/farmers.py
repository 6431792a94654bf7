"""Farmer self-service routes plus the admin farmer directory."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.auth.dependencies import require_role
from farmtrace.database import get_db
from farmtrace.errors import map_error
from farmtrace.models.enums import UserRoleEnum
from farmtrace.schemas.product import (
	FarmerDirectoryRead,
	FarmerListRead,
	FarmerProfileRead,
	FarmerProfileUpdate,
	ProductListRead,
	ProductRead,
)
from farmtrace.services.product_service import ProductService

router = APIRouter(prefix="/farmer", tags=["farmer"])

_farmer = require_role(UserRoleEnum.farmer)
_admin = require_role(UserRoleEnum.admin)


@router.get("/profile", response_model=FarmerProfileRead)
async def get_profile(
	db: AsyncSession = Depends(get_db),
	user=Depends(_farmer),
) -> FarmerProfileRead:
	try:
		profile = await ProductService(db).get_profile(user.id)
	except Exception as exc:
		raise map_error(exc) from exc
	return FarmerProfileRead.model_validate(profile)


@router.put("/profile", response_model=FarmerProfileRead)
async def update_profile(
	payload: FarmerProfileUpdate,
	db: AsyncSession = Depends(get_db),
	user=Depends(_farmer),
) -> FarmerProfileRead:
	try:
		profile = await ProductService(db).update_profile(user.id, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return FarmerProfileRead.model_validate(profile)


@router.get("/products", response_model=ProductListRead)
async def my_products(
	db: AsyncSession = Depends(get_db),
	user=Depends(_farmer),
) -> ProductListRead:
	try:
		products = await ProductService(db).farmer_products(user.id)
	except Exception as exc:
		raise map_error(exc) from exc
	return ProductListRead(items=[ProductRead.model_validate(product) for product in products])


@router.get("", response_model=FarmerListRead)
async def list_farmers(
	db: AsyncSession = Depends(get_db),
	_user=Depends(_admin),
) -> FarmerListRead:
	try:
		farmers = await ProductService(db).list_farmers()
	except Exception as exc:
		raise map_error(exc) from exc
	return FarmerListRead(items=[FarmerDirectoryRead.model_validate(farmer) for farmer in farmers])


@router.get("/{profile_id}", response_model=FarmerDirectoryRead)
async def get_farmer(
	profile_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	_user=Depends(_admin),
) -> FarmerDirectoryRead:
	try:
		farmer = await ProductService(db).get_farmer(profile_id)
	except Exception as exc:
		raise map_error(exc) from exc
	return FarmerDirectoryRead.model_validate(farmer)


@router.delete("/{profile_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_farmer(
	profile_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	user=Depends(_admin),
) -> Response:
	try:
		await ProductService(db).delete_farmer(user, profile_id)
	except Exception as exc:
		raise map_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)
