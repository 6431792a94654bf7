"""Transporter routes: pickup queue, accepting legs, completing deliveries."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.auth.dependencies import require_role
from farmtrace.database import get_db
from farmtrace.errors import map_error
from farmtrace.models.enums import UserRoleEnum
from farmtrace.schemas.assignment import PickupListRead
from farmtrace.schemas.product import ProductListRead, ProductRead
from farmtrace.schemas.records import (
	TransportComplete,
	TransportCreate,
	TransportDetailRead,
	TransportListRead,
	TransportUpdate,
)
from farmtrace.services.assignment_service import AssignmentService
from farmtrace.services.events import EventPublisher
from farmtrace.services.transition_service import TransitionService

router = APIRouter(prefix="/transport", tags=["transport"])

_transporter = require_role(UserRoleEnum.transporter, UserRoleEnum.admin)


def _transitions(request: Request, db: AsyncSession) -> TransitionService:
	return TransitionService(db, EventPublisher.from_request(request))


@router.get("", response_model=TransportListRead)
async def list_transport_records(
	db: AsyncSession = Depends(get_db),
	user=Depends(_transporter),
) -> TransportListRead:
	try:
		records = await AssignmentService(db).transport_records(user)
	except Exception as exc:
		raise map_error(exc) from exc
	return TransportListRead(items=[TransportDetailRead.model_validate(record) for record in records])


@router.get("/available-products", response_model=PickupListRead)
async def available_products(
	db: AsyncSession = Depends(get_db),
	_user=Depends(_transporter),
) -> PickupListRead:
	try:
		items = await AssignmentService(db).available_for_pickup()
	except Exception as exc:
		raise map_error(exc) from exc
	return PickupListRead(items=items)


@router.get("/shipments", response_model=ProductListRead)
async def my_shipments(
	db: AsyncSession = Depends(get_db),
	user=Depends(_transporter),
) -> ProductListRead:
	try:
		products = await AssignmentService(db).assigned_to_transporter(user)
	except Exception as exc:
		raise map_error(exc) from exc
	return ProductListRead(items=[ProductRead.model_validate(product) for product in products])


@router.post("", response_model=TransportDetailRead, status_code=status.HTTP_201_CREATED)
async def accept_pickup(
	payload: TransportCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(_transporter),
) -> TransportDetailRead:
	try:
		record = await _transitions(request, db).accept_pickup(user, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return TransportDetailRead.model_validate(record)


@router.put("/{record_id}", response_model=TransportDetailRead)
async def update_transport(
	record_id: uuid.UUID,
	payload: TransportUpdate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(_transporter),
) -> TransportDetailRead:
	try:
		record = await _transitions(request, db).update_transport(user, record_id, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return TransportDetailRead.model_validate(record)


@router.put("/{record_id}/complete", response_model=TransportDetailRead)
async def complete_transport(
	record_id: uuid.UUID,
	request: Request,
	payload: TransportComplete | None = None,
	db: AsyncSession = Depends(get_db),
	user=Depends(_transporter),
) -> TransportDetailRead:
	try:
		record = await _transitions(request, db).complete_transport(user, record_id, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return TransportDetailRead.model_validate(record)
