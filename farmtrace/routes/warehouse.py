"""Warehouse routes: intake, storage corrections and dispatch to retail."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.auth.dependencies import require_role
from farmtrace.database import get_db
from farmtrace.errors import map_error
from farmtrace.models.enums import UserRoleEnum
from farmtrace.schemas.assignment import RetailerListRead
from farmtrace.schemas.product import ProductListRead, ProductRead, UserSummary
from farmtrace.schemas.records import (
	DispatchRequest,
	WarehouseCreate,
	WarehouseDetailRead,
	WarehouseListRead,
	WarehouseUpdate,
)
from farmtrace.services.assignment_service import AssignmentService
from farmtrace.services.events import EventPublisher
from farmtrace.services.transition_service import TransitionService

router = APIRouter(prefix="/warehouse", tags=["warehouse"])

_warehouse = require_role(UserRoleEnum.warehouse, UserRoleEnum.admin)


def _transitions(request: Request, db: AsyncSession) -> TransitionService:
	return TransitionService(db, EventPublisher.from_request(request))


def _products(products: list) -> ProductListRead:
	return ProductListRead(items=[ProductRead.model_validate(product) for product in products])


@router.get("", response_model=WarehouseListRead)
async def list_warehouse_records(
	db: AsyncSession = Depends(get_db),
	user=Depends(_warehouse),
) -> WarehouseListRead:
	try:
		records = await AssignmentService(db).warehouse_records(user)
	except Exception as exc:
		raise map_error(exc) from exc
	return WarehouseListRead(items=[WarehouseDetailRead.model_validate(record) for record in records])


@router.get("/available-products", response_model=ProductListRead)
async def available_products(
	db: AsyncSession = Depends(get_db),
	user=Depends(_warehouse),
) -> ProductListRead:
	try:
		products = await AssignmentService(db).available_for_storage(user)
	except Exception as exc:
		raise map_error(exc) from exc
	return _products(products)


@router.get("/assigned-products", response_model=ProductListRead)
async def assigned_products(
	db: AsyncSession = Depends(get_db),
	user=Depends(_warehouse),
) -> ProductListRead:
	try:
		products = await AssignmentService(db).assigned_to_warehouse(user)
	except Exception as exc:
		raise map_error(exc) from exc
	return _products(products)


@router.get("/available-retailers", response_model=RetailerListRead)
async def available_retailers(
	db: AsyncSession = Depends(get_db),
	_user=Depends(_warehouse),
) -> RetailerListRead:
	try:
		retailers = await AssignmentService(db).list_retailers()
	except Exception as exc:
		raise map_error(exc) from exc
	return RetailerListRead(items=[UserSummary.model_validate(retailer) for retailer in retailers])


@router.post("", response_model=WarehouseDetailRead, status_code=status.HTTP_201_CREATED)
async def store_product(
	payload: WarehouseCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(_warehouse),
) -> WarehouseDetailRead:
	try:
		record = await _transitions(request, db).store_product(user, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return WarehouseDetailRead.model_validate(record)


@router.put("/product/{product_id}/dispatch", response_model=ProductRead)
async def dispatch_product(
	product_id: uuid.UUID,
	payload: DispatchRequest,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(_warehouse),
) -> ProductRead:
	try:
		product = await _transitions(request, db).dispatch_product(user, product_id, payload.retailer_id)
	except Exception as exc:
		raise map_error(exc) from exc
	return ProductRead.model_validate(product)


@router.put("/{record_id}", response_model=WarehouseDetailRead)
async def update_warehouse(
	record_id: uuid.UUID,
	payload: WarehouseUpdate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(_warehouse),
) -> WarehouseDetailRead:
	try:
		record = await _transitions(request, db).update_warehouse(user, record_id, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return WarehouseDetailRead.model_validate(record)


@router.put("/{record_id}/dispatch", response_model=ProductRead)
async def dispatch_record(
	record_id: uuid.UUID,
	payload: DispatchRequest,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(_warehouse),
) -> ProductRead:
	try:
		product = await _transitions(request, db).dispatch_record(user, record_id, payload.retailer_id)
	except Exception as exc:
		raise map_error(exc) from exc
	return ProductRead.model_validate(product)
