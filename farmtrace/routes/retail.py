"""Retailer routes: listings, corrections and the final sale."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.auth.dependencies import require_role
from farmtrace.database import get_db
from farmtrace.errors import map_error
from farmtrace.models.enums import UserRoleEnum
from farmtrace.schemas.product import ProductListRead, ProductRead
from farmtrace.schemas.records import RetailCreate, RetailDetailRead, RetailListRead, RetailUpdate, SaleRequest
from farmtrace.services.assignment_service import AssignmentService
from farmtrace.services.events import EventPublisher
from farmtrace.services.transition_service import TransitionService

router = APIRouter(prefix="/retail", tags=["retail"])

_retailer = require_role(UserRoleEnum.retailer, UserRoleEnum.admin)


def _transitions(request: Request, db: AsyncSession) -> TransitionService:
	return TransitionService(db, EventPublisher.from_request(request))


@router.get("", response_model=RetailListRead)
async def list_retail_records(
	db: AsyncSession = Depends(get_db),
	user=Depends(_retailer),
) -> RetailListRead:
	try:
		records = await AssignmentService(db).retail_records(user)
	except Exception as exc:
		raise map_error(exc) from exc
	return RetailListRead(items=[RetailDetailRead.model_validate(record) for record in records])


@router.get("/available-products", response_model=ProductListRead)
async def available_products(
	db: AsyncSession = Depends(get_db),
	user=Depends(_retailer),
) -> ProductListRead:
	try:
		products = await AssignmentService(db).available_for_retail(user)
	except Exception as exc:
		raise map_error(exc) from exc
	return ProductListRead(items=[ProductRead.model_validate(product) for product in products])


@router.get("/assigned-products", response_model=ProductListRead)
async def assigned_products(
	db: AsyncSession = Depends(get_db),
	user=Depends(_retailer),
) -> ProductListRead:
	try:
		products = await AssignmentService(db).assigned_to_retailer(user)
	except Exception as exc:
		raise map_error(exc) from exc
	return ProductListRead(items=[ProductRead.model_validate(product) for product in products])


@router.post("", response_model=RetailDetailRead, status_code=status.HTTP_201_CREATED)
async def list_for_sale(
	payload: RetailCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(_retailer),
) -> RetailDetailRead:
	try:
		record = await _transitions(request, db).list_for_sale(user, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return RetailDetailRead.model_validate(record)


@router.put("/{record_id}", response_model=RetailDetailRead)
async def update_retail(
	record_id: uuid.UUID,
	payload: RetailUpdate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(_retailer),
) -> RetailDetailRead:
	try:
		record = await _transitions(request, db).update_retail(user, record_id, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return RetailDetailRead.model_validate(record)


@router.put("/{record_id}/sell-out", response_model=RetailDetailRead)
async def sell_out(
	record_id: uuid.UUID,
	payload: SaleRequest,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(_retailer),
) -> RetailDetailRead:
	try:
		record = await _transitions(request, db).sell(user, record_id, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return RetailDetailRead.model_validate(record)
