"""Product creation, reads, descriptive edits and admin deletion."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.auth.dependencies import get_current_user, require_role
from farmtrace.database import get_db
from farmtrace.errors import map_error
from farmtrace.models.enums import UserRoleEnum
from farmtrace.schemas.product import ProductCreate, ProductListRead, ProductRead, ProductUpdate
from farmtrace.services.events import EventPublisher
from farmtrace.services.product_service import ProductService
from farmtrace.services.transition_service import TransitionService

router = APIRouter(prefix="/products", tags=["products"])


@router.post("", response_model=ProductRead, status_code=status.HTTP_201_CREATED)
async def create_product(
	payload: ProductCreate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(require_role(UserRoleEnum.farmer)),
) -> ProductRead:
	service = TransitionService(db, EventPublisher.from_request(request))
	try:
		product = await service.create_product(user, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return ProductRead.model_validate(product)


@router.get("", response_model=ProductListRead)
async def list_products(
	db: AsyncSession = Depends(get_db),
	user=Depends(get_current_user),
) -> ProductListRead:
	try:
		products = await ProductService(db).list_products(user)
	except Exception as exc:
		raise map_error(exc) from exc
	return ProductListRead(items=[ProductRead.model_validate(product) for product in products])


@router.get("/{product_id}", response_model=ProductRead)
async def get_product(
	product_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	user=Depends(get_current_user),
) -> ProductRead:
	try:
		product = await ProductService(db).get_product(product_id, user)
	except Exception as exc:
		raise map_error(exc) from exc
	return ProductRead.model_validate(product)


@router.put("/{product_id}", response_model=ProductRead)
async def update_product(
	product_id: uuid.UUID,
	payload: ProductUpdate,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(require_role(UserRoleEnum.farmer, UserRoleEnum.admin)),
) -> ProductRead:
	service = ProductService(db, EventPublisher.from_request(request))
	try:
		product = await service.update_product(user, product_id, payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return ProductRead.model_validate(product)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
	product_id: uuid.UUID,
	request: Request,
	db: AsyncSession = Depends(get_db),
	user=Depends(require_role(UserRoleEnum.admin)),
) -> Response:
	service = ProductService(db, EventPublisher.from_request(request))
	try:
		await service.delete_product(user, product_id)
	except Exception as exc:
		raise map_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)
