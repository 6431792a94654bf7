"""Public tracking routes: no authentication, rate limited per client IP."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.database import get_db
from farmtrace.errors import map_error
from farmtrace.schemas.tracking import PurchaseListRead, TrackingResponse
from farmtrace.services.journey_service import JourneyService

router = APIRouter(prefix="/customer", tags=["customer"])


@router.get("/track/{product_id}", response_model=TrackingResponse)
async def track_product(product_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> TrackingResponse:
	try:
		return await JourneyService(db).track_by_id(product_id)
	except Exception as exc:
		raise map_error(exc) from exc


@router.get("/track-by-code/{product_code}", response_model=TrackingResponse)
async def track_by_code(product_code: str, db: AsyncSession = Depends(get_db)) -> TrackingResponse:
	try:
		return await JourneyService(db).track_by_code(product_code)
	except Exception as exc:
		raise map_error(exc) from exc


@router.get("/purchases/{phone}", response_model=PurchaseListRead)
async def purchases(phone: str, db: AsyncSession = Depends(get_db)) -> PurchaseListRead:
	try:
		return await JourneyService(db).purchases_by_phone(phone)
	except Exception as exc:
		raise map_error(exc) from exc
