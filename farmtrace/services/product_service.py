"""Farmer profiles, product reads and admin housekeeping."""

from __future__ import annotations

import uuid
from typing import Any

import structlog
from sqlalchemy import delete, exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.errors import Conflict, Forbidden, InvalidStageTransition, NotFound, ValidationError
from farmtrace.models.enums import ProductStageEnum, UserRoleEnum
from farmtrace.models.product import FarmerProfile, Product
from farmtrace.models.records import RetailRecord, TransportRecord, WarehouseRecord
from farmtrace.models.user import User
from farmtrace.schemas.product import FarmerProfileUpdate, ProductUpdate
from farmtrace.services.events import EventPublisher

logger = structlog.get_logger("farmtrace.products")


class ProductService:
	def __init__(self, db: AsyncSession, publisher: EventPublisher | None = None):
		self.db = db
		self.publisher = publisher or EventPublisher(None)

	# ── Farmer profile ──────────────────────────────────────────────────────

	async def get_profile(self, user_id: uuid.UUID) -> FarmerProfile:
		rows = await self.db.execute(select(FarmerProfile).where(FarmerProfile.user_id == user_id))
		profile = rows.scalar_one_or_none()
		if profile is None:
			raise NotFound("Farmer profile not found")
		return profile

	async def update_profile(self, user_id: uuid.UUID, payload: FarmerProfileUpdate) -> FarmerProfile:
		profile = await self.get_profile(user_id)
		for name, value in payload.model_dump(exclude_unset=True).items():
			setattr(profile, name, value)
		await self.db.commit()
		await self.db.refresh(profile)
		return profile

	async def farmer_products(self, user_id: uuid.UUID) -> list[Product]:
		profile = await self.get_profile(user_id)
		rows = await self.db.execute(
			select(Product).where(Product.farmer_id == profile.id).order_by(Product.created_at.desc())
		)
		return list(rows.scalars().all())

	# ── Products ────────────────────────────────────────────────────────────

	async def list_products(self, actor: Any) -> list[Product]:
		if UserRoleEnum(actor.role) == UserRoleEnum.farmer:
			return await self.farmer_products(actor.id)
		rows = await self.db.execute(select(Product).order_by(Product.created_at.desc()))
		return list(rows.scalars().all())

	async def get_product(self, product_id: uuid.UUID, actor: Any | None = None) -> Product:
		rows = await self.db.execute(select(Product).where(Product.id == product_id))
		product = rows.scalar_one_or_none()
		if product is None:
			raise NotFound(f"Product {product_id} not found")
		if actor is not None and UserRoleEnum(actor.role) == UserRoleEnum.farmer:
			if product.farmer is None or product.farmer.user_id != actor.id:
				raise Forbidden("Product belongs to another farmer")
		return product

	async def delete_product(self, actor: Any, product_id: uuid.UUID) -> None:
		"""Hard delete of a product and its stage records, outside the state machine."""
		product = await self.get_product(product_id)
		for model in (TransportRecord, WarehouseRecord, RetailRecord):
			await self.db.execute(delete(model).where(model.product_id == product.id))
		await self.db.delete(product)
		await self.db.commit()
		logger.info(
			"product_deleted",
			product_id=str(product.id),
			product_code=product.product_code,
			actor_id=str(actor.id),
		)
		await self.publisher.publish("product_deleted", product, actor_id=actor.id)

	async def update_product(self, actor: Any, product_id: uuid.UUID, payload: ProductUpdate) -> Product:
		"""Edit descriptive fields; the stage and assignments are never touched here.

		Quantity is fixed once the product leaves ``harvested``.
		"""
		product = await self.get_product(product_id, actor)
		values = {name: value for name, value in payload.model_dump(exclude_unset=True).items() if value is not None}
		if not values:
			return product

		stage = ProductStageEnum(product.current_stage)
		if not product.is_active:
			raise InvalidStageTransition("Sold products can no longer be edited", current=stage.value)
		conditions = [Product.id == product.id, Product.is_active.is_(True)]
		if "quantity" in values:
			if stage != ProductStageEnum.harvested:
				raise InvalidStageTransition(
					"Quantity can only change before pickup",
					current=stage.value,
					required=ProductStageEnum.harvested.value,
				)
			conditions.append(Product.current_stage == ProductStageEnum.harvested)

		result = await self.db.execute(
			update(Product).where(*conditions).values(**values).execution_options(synchronize_session=False)
		)
		if result.rowcount != 1:
			await self.db.rollback()
			raise Conflict(f"Product {product.id} changed while the edit was processed; re-fetch and retry")
		await self.db.commit()
		await self.db.refresh(product)
		logger.info(
			"product_updated",
			product_id=str(product.id),
			fields=sorted(values),
			actor_id=str(actor.id),
		)
		await self.publisher.publish("product_updated", product, actor_id=actor.id)
		return product

	# ── Farmer directory ────────────────────────────────────────────────────

	async def list_farmers(self) -> list[FarmerProfile]:
		rows = await self.db.execute(select(FarmerProfile).order_by(FarmerProfile.created_at.desc()))
		return list(rows.scalars().all())

	async def get_farmer(self, profile_id: uuid.UUID) -> FarmerProfile:
		rows = await self.db.execute(select(FarmerProfile).where(FarmerProfile.id == profile_id))
		profile = rows.scalar_one_or_none()
		if profile is None:
			raise NotFound(f"Farmer {profile_id} not found")
		return profile

	async def delete_farmer(self, actor: Any, profile_id: uuid.UUID) -> None:
		profile = await self.get_farmer(profile_id)
		rows = await self.db.execute(select(exists().where(Product.farmer_id == profile.id)))
		if rows.scalar():
			raise Conflict("Farmer still owns products; delete those first")
		await self.db.delete(profile)
		await self.db.commit()
		logger.info("farmer_profile_deleted", profile_id=str(profile_id), actor_id=str(actor.id))

	# ── Users ───────────────────────────────────────────────────────────────

	async def list_users(self) -> list[User]:
		rows = await self.db.execute(select(User).order_by(User.created_at.desc()))
		return list(rows.scalars().all())

	async def delete_user(self, actor: Any, user_id: uuid.UUID) -> None:
		"""Hard delete of an account nothing in the pipeline points at."""
		if user_id == actor.id:
			raise ValidationError("Admins cannot delete their own account")
		rows = await self.db.execute(select(User).where(User.id == user_id))
		user = rows.scalar_one_or_none()
		if user is None:
			raise NotFound(f"User {user_id} not found")
		rows = await self.db.execute(select(_user_is_referenced(user.id)))
		if rows.scalar():
			raise Conflict(f"User {user_id} is referenced by products or stage records and cannot be deleted")
		await self.db.delete(user)
		await self.db.commit()
		logger.info("user_deleted", user_id=str(user_id), actor_id=str(actor.id))


def _user_is_referenced(user_id: uuid.UUID) -> Any:
	return or_(
		exists().where(
			or_(
				Product.assigned_transporter_id == user_id,
				Product.assigned_warehouse_id == user_id,
				Product.assigned_retailer_id == user_id,
			)
		),
		exists().where(Product.farmer_id == FarmerProfile.id, FarmerProfile.user_id == user_id),
		exists().where(TransportRecord.transporter_id == user_id),
		exists().where(WarehouseRecord.warehouse_staff_id == user_id),
		exists().where(RetailRecord.retailer_id == user_id),
	)
