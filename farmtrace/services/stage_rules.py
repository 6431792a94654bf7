"""Stage guards for the product pipeline.

Every transition is decided here, on plain objects, before anything touches
the database.  A guard either raises a ``PipelineError`` or returns a
``StagePlan``: the stage the product must still be in, the column values to
write, and the assignment predicates the conditional update must match.
``TransitionService`` turns a plan into a single guarded UPDATE.
"""

from __future__ import annotations

import secrets
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from farmtrace.errors import Forbidden, InsufficientStock, Internal, InvalidStageTransition, ValidationError
from farmtrace.models.enums import ProductStageEnum, TransportStatusEnum, UserRoleEnum

STAGE_SEQUENCE: tuple[ProductStageEnum, ...] = tuple(ProductStageEnum)

_CODE_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_CODE_SUFFIX_LENGTH = 5

_ASSIGNMENT_FIELDS = ("assigned_transporter_id", "assigned_warehouse_id", "assigned_retailer_id")


@dataclass(frozen=True, slots=True)
class StagePlan:
	expected_stage: ProductStageEnum
	values: dict[str, Any]
	guards: dict[str, frozenset[uuid.UUID | None]] = field(default_factory=dict)

	@property
	def target_stage(self) -> ProductStageEnum:
		return ProductStageEnum(self.values.get("current_stage", self.expected_stage))


def generate_product_code(prefix: str, now_ms: int | None = None) -> str:
	"""``prefix`` + epoch millis + five random base36 characters."""
	millis = now_ms if now_ms is not None else int(time.time() * 1000)
	suffix = "".join(secrets.choice(_CODE_ALPHABET) for _ in range(_CODE_SUFFIX_LENGTH))
	return f"{prefix}{millis}{suffix}"


def stage_index(stage: Any) -> int:
	return STAGE_SEQUENCE.index(ProductStageEnum(stage))


def next_stage(stage: Any) -> ProductStageEnum | None:
	idx = stage_index(stage)
	if idx + 1 >= len(STAGE_SEQUENCE):
		return None
	return STAGE_SEQUENCE[idx + 1]


def _role(actor: Any) -> UserRoleEnum:
	return UserRoleEnum(actor.role)


def require_actor_role(actor: Any, allowed: set[UserRoleEnum], action: str) -> None:
	if _role(actor) not in allowed:
		raise Forbidden(f"Role '{actor.role}' may not {action}")


def require_stage(product: Any, required: ProductStageEnum, action: str) -> None:
	current = ProductStageEnum(product.current_stage)
	if current != required:
		raise InvalidStageTransition(
			f"Product is in '{current.value}' stage. Can only {action} products in '{required.value}' stage.",
			current=current.value,
			required=required.value,
		)
	if not product.is_active:
		raise InvalidStageTransition(
			f"Product is not active, cannot {action} it",
			current=current.value,
			required=required.value,
		)


def require_record_owner(actor: Any, owner_id: uuid.UUID, what: str) -> None:
	if _role(actor) == UserRoleEnum.admin:
		return
	if owner_id != actor.id:
		raise Forbidden(f"{what} not found or access denied")


def snapshot(product: Any, values: Mapping[str, Any] | None = None) -> dict[str, Any]:
	state = {
		"current_stage": product.current_stage,
		"is_active": product.is_active,
		"customer_phone": product.customer_phone,
	}
	for name in _ASSIGNMENT_FIELDS:
		state[name] = getattr(product, name)
	if values:
		state.update(values)
	return state


def ensure_consistent(state: Mapping[str, Any]) -> None:
	"""Reject stage/assignment combinations that must never be persisted."""
	stage = ProductStageEnum(state["current_stage"])
	idx = stage_index(stage)
	problems: list[str] = []

	if idx >= stage_index(ProductStageEnum.in_transport) and state["assigned_transporter_id"] is None:
		problems.append(f"'{stage.value}' requires an assigned transporter")
	if idx >= stage_index(ProductStageEnum.in_retail):
		if state["assigned_warehouse_id"] is None:
			problems.append(f"'{stage.value}' requires an assigned warehouse")
		if state["assigned_retailer_id"] is None:
			problems.append(f"'{stage.value}' requires an assigned retailer")
	elif state["assigned_retailer_id"] is not None:
		problems.append(f"'{stage.value}' cannot carry a retailer assignment")
	if stage == ProductStageEnum.harvested and state["assigned_transporter_id"] is not None:
		problems.append("'harvested' cannot carry a transporter assignment")

	if stage == ProductStageEnum.sold:
		if state["is_active"]:
			problems.append("sold products must be inactive")
		if not state["customer_phone"]:
			problems.append("sold products require a customer phone")
	elif state["customer_phone"]:
		problems.append(f"'{stage.value}' cannot carry a customer phone")

	if problems:
		raise Internal("Inconsistent product state: " + "; ".join(problems))


def _finalize(product: Any, plan: StagePlan) -> StagePlan:
	if stage_index(plan.target_stage) not in (stage_index(plan.expected_stage), stage_index(plan.expected_stage) + 1):
		raise Internal(f"Refusing to move product from '{plan.expected_stage.value}' to '{plan.target_stage.value}'")
	ensure_consistent(snapshot(product, plan.values))
	return plan


# ── Guards, one per pipeline step ───────────────────────────────────────────


def plan_pickup(product: Any, actor: Any) -> StagePlan:
	require_actor_role(actor, {UserRoleEnum.transporter}, "accept pickups")
	require_stage(product, ProductStageEnum.harvested, "transport")
	return _finalize(
		product,
		StagePlan(
			expected_stage=ProductStageEnum.harvested,
			values={
				"current_stage": ProductStageEnum.in_transport,
				"assigned_transporter_id": actor.id,
			},
			guards={"assigned_transporter_id": frozenset({None})},
		),
	)


def plan_delivery(product: Any, record: Any, actor: Any, warehouse_id: uuid.UUID | None = None) -> StagePlan:
	require_actor_role(actor, {UserRoleEnum.transporter, UserRoleEnum.admin}, "complete transport legs")
	require_record_owner(actor, record.transporter_id, "Transport entry")
	if TransportStatusEnum(record.status) == TransportStatusEnum.delivered:
		raise InvalidStageTransition(
			"Transport leg is already delivered",
			current=ProductStageEnum(product.current_stage).value,
			required=ProductStageEnum.in_transport.value,
		)
	require_stage(product, ProductStageEnum.in_transport, "complete transport for")
	if product.assigned_transporter_id != record.transporter_id:
		raise Forbidden("Transport leg does not belong to the assigned transporter")

	values: dict[str, Any] = {"current_stage": ProductStageEnum.in_warehouse}
	if warehouse_id is not None:
		values["assigned_warehouse_id"] = warehouse_id
	return _finalize(
		product,
		StagePlan(
			expected_stage=ProductStageEnum.in_transport,
			values=values,
			guards={"assigned_transporter_id": frozenset({record.transporter_id})},
		),
	)


def _claim_warehouse(product: Any, actor: Any) -> uuid.UUID:
	assigned = product.assigned_warehouse_id
	if assigned is not None and assigned != actor.id:
		raise Forbidden("Product is assigned to another warehouse")
	return actor.id


def plan_intake(product: Any, actor: Any) -> StagePlan:
	require_actor_role(actor, {UserRoleEnum.warehouse}, "store products")
	require_stage(product, ProductStageEnum.in_warehouse, "store")
	warehouse_id = _claim_warehouse(product, actor)
	return _finalize(
		product,
		StagePlan(
			expected_stage=ProductStageEnum.in_warehouse,
			values={"assigned_warehouse_id": warehouse_id},
			guards={"assigned_warehouse_id": frozenset({None, warehouse_id})},
		),
	)


def plan_dispatch(
	product: Any,
	actor: Any,
	retailer_id: uuid.UUID | None,
	fallback_warehouse_id: uuid.UUID | None = None,
) -> StagePlan:
	"""Hand a stored product to a retailer.

	Warehouse staff dispatch from their own shelf and claim unassigned
	products on the way out.  Admins dispatch on behalf of whichever
	warehouse holds the product, falling back to the latest storage record.
	"""
	require_actor_role(actor, {UserRoleEnum.warehouse, UserRoleEnum.admin}, "dispatch products")
	if retailer_id is None:
		raise ValidationError.missing("retailer_id", "Retailer ID is required")
	require_stage(product, ProductStageEnum.in_warehouse, "dispatch")

	if _role(actor) == UserRoleEnum.warehouse:
		warehouse_id = _claim_warehouse(product, actor)
	else:
		warehouse_id = product.assigned_warehouse_id or fallback_warehouse_id
		if warehouse_id is None:
			raise ValidationError.missing("warehouse_id", "Product has no warehouse to dispatch from")

	return _finalize(
		product,
		StagePlan(
			expected_stage=ProductStageEnum.in_warehouse,
			values={
				"current_stage": ProductStageEnum.in_retail,
				"assigned_warehouse_id": warehouse_id,
				"assigned_retailer_id": retailer_id,
			},
			guards={"assigned_warehouse_id": frozenset({None, warehouse_id})},
		),
	)


def plan_listing(product: Any, actor: Any) -> StagePlan:
	require_actor_role(actor, {UserRoleEnum.retailer}, "list products")
	require_stage(product, ProductStageEnum.in_retail, "list")
	if product.assigned_retailer_id != actor.id:
		raise Forbidden("Product is not assigned to you")
	return _finalize(
		product,
		StagePlan(
			expected_stage=ProductStageEnum.in_retail,
			values={"assigned_retailer_id": actor.id},
			guards={"assigned_retailer_id": frozenset({actor.id})},
		),
	)


def plan_sale(
	product: Any,
	record: Any,
	actor: Any,
	customer_phone: str | None,
	quantity: int | None = None,
) -> tuple[StagePlan, int]:
	"""Close a listing.  Returns the plan and the quantity being sold."""
	require_actor_role(actor, {UserRoleEnum.retailer, UserRoleEnum.admin}, "sell products")
	phone = (customer_phone or "").strip()
	if not phone:
		raise ValidationError.missing("customer_phone", "Customer phone is required")
	require_record_owner(actor, record.retailer_id, "Retail entry")
	if record.closed_at is not None:
		raise InvalidStageTransition(
			"Retail listing is already closed",
			current=ProductStageEnum(product.current_stage).value,
			required=ProductStageEnum.in_retail.value,
		)
	require_stage(product, ProductStageEnum.in_retail, "sell")
	if product.assigned_retailer_id != record.retailer_id:
		raise Forbidden("Retail listing does not belong to the assigned retailer")

	sold = record.stock if quantity is None else quantity
	if sold <= 0:
		raise ValidationError.missing("quantity", "Quantity must be positive")
	if sold > record.stock:
		raise InsufficientStock(f"Requested {sold} units but only {record.stock} in stock")

	plan = _finalize(
		product,
		StagePlan(
			expected_stage=ProductStageEnum.in_retail,
			values={
				"current_stage": ProductStageEnum.sold,
				"is_active": False,
				"customer_phone": phone,
			},
			guards={"assigned_retailer_id": frozenset({record.retailer_id})},
		),
	)
	return plan, sold
