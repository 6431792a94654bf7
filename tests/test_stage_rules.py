from __future__ import annotations

import re
from uuid import uuid4

import pytest

from farmtrace.errors import Forbidden, InsufficientStock, Internal, InvalidStageTransition, ValidationError
from farmtrace.models.enums import ProductStageEnum, TransportStatusEnum, UserRoleEnum
from farmtrace.services import stage_rules
from farmtrace.services.journey import build_journey


def test_stage_sequence_is_linear() -> None:
	assert stage_rules.STAGE_SEQUENCE == (
		ProductStageEnum.harvested,
		ProductStageEnum.in_transport,
		ProductStageEnum.in_warehouse,
		ProductStageEnum.in_retail,
		ProductStageEnum.sold,
	)
	assert stage_rules.next_stage(ProductStageEnum.harvested) == ProductStageEnum.in_transport
	assert stage_rules.next_stage("in_retail") == ProductStageEnum.sold
	assert stage_rules.next_stage(ProductStageEnum.sold) is None


def test_product_code_has_prefix_millis_and_suffix() -> None:
	code = stage_rules.generate_product_code("PC", now_ms=1767225600000)
	assert re.fullmatch(r"PC1767225600000[0-9A-Z]{5}", code)
	assert stage_rules.generate_product_code("PC") != stage_rules.generate_product_code("PC")


def test_pickup_assigns_transporter_and_advances(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	product = factory.product()

	plan = stage_rules.plan_pickup(product, transporter)

	assert plan.expected_stage == ProductStageEnum.harvested
	assert plan.target_stage == ProductStageEnum.in_transport
	assert plan.values["assigned_transporter_id"] == transporter.id


def test_pickup_of_warehoused_product_is_invalid_stage(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	product = factory.product(
		ProductStageEnum.in_warehouse,
		transporter=factory.user(UserRoleEnum.transporter),
	)

	with pytest.raises(InvalidStageTransition) as excinfo:
		stage_rules.plan_pickup(product, transporter)

	assert excinfo.value.current == "in_warehouse"
	assert excinfo.value.required == "harvested"
	assert product.current_stage == ProductStageEnum.in_warehouse


def test_inactive_product_is_rejected_as_invalid_stage(factory) -> None:
	product = factory.product(is_active=False)
	with pytest.raises(InvalidStageTransition):
		stage_rules.plan_pickup(product, factory.user(UserRoleEnum.transporter))


def test_pickup_forbidden_for_other_roles(factory) -> None:
	with pytest.raises(Forbidden):
		stage_rules.plan_pickup(factory.product(), factory.user(UserRoleEnum.retailer))


def test_delivery_by_other_transporter_is_forbidden(factory) -> None:
	owner = factory.user(UserRoleEnum.transporter)
	product = factory.product(ProductStageEnum.in_transport, transporter=owner)
	leg = factory.transport(product, owner)

	with pytest.raises(Forbidden):
		stage_rules.plan_delivery(product, leg, factory.user(UserRoleEnum.transporter))


def test_delivery_assigns_receiving_warehouse(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	warehouse = factory.user(UserRoleEnum.warehouse)
	product = factory.product(ProductStageEnum.in_transport, transporter=transporter)
	leg = factory.transport(product, transporter)

	plan = stage_rules.plan_delivery(product, leg, transporter, warehouse.id)

	assert plan.target_stage == ProductStageEnum.in_warehouse
	assert plan.values["assigned_warehouse_id"] == warehouse.id
	assert plan.guards == {"assigned_transporter_id": frozenset({transporter.id})}


def test_admin_may_complete_someone_elses_leg(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	product = factory.product(ProductStageEnum.in_transport, transporter=transporter)
	leg = factory.transport(product, transporter)

	plan = stage_rules.plan_delivery(product, leg, factory.user(UserRoleEnum.admin))
	assert "assigned_warehouse_id" not in plan.values


def test_delivered_leg_cannot_complete_twice(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	product = factory.product(ProductStageEnum.in_transport, transporter=transporter)
	leg = factory.transport(product, transporter, status=TransportStatusEnum.delivered)

	with pytest.raises(InvalidStageTransition):
		stage_rules.plan_delivery(product, leg, transporter)


def test_intake_claims_unassigned_product(factory) -> None:
	staff = factory.user(UserRoleEnum.warehouse)
	product = factory.product(ProductStageEnum.in_warehouse, transporter=factory.user(UserRoleEnum.transporter))

	plan = stage_rules.plan_intake(product, staff)

	assert plan.values == {"assigned_warehouse_id": staff.id}
	assert plan.guards["assigned_warehouse_id"] == frozenset({None, staff.id})
	assert plan.target_stage == ProductStageEnum.in_warehouse


def test_intake_of_product_claimed_elsewhere_is_forbidden(factory) -> None:
	product = factory.product(
		ProductStageEnum.in_warehouse,
		transporter=factory.user(UserRoleEnum.transporter),
		warehouse=factory.user(UserRoleEnum.warehouse),
	)
	with pytest.raises(Forbidden):
		stage_rules.plan_intake(product, factory.user(UserRoleEnum.warehouse))


def test_dispatch_without_retailer_is_validation_error(factory) -> None:
	staff = factory.user(UserRoleEnum.warehouse)
	product = factory.product(ProductStageEnum.in_warehouse, transporter=factory.user(UserRoleEnum.transporter))

	with pytest.raises(ValidationError) as excinfo:
		stage_rules.plan_dispatch(product, staff, None)

	assert excinfo.value.errors[0]["field"] == "retailer_id"


def test_admin_dispatch_falls_back_to_storage_record(factory) -> None:
	staff = factory.user(UserRoleEnum.warehouse)
	retailer = factory.user(UserRoleEnum.retailer)
	product = factory.product(ProductStageEnum.in_warehouse, transporter=factory.user(UserRoleEnum.transporter))
	admin = factory.user(UserRoleEnum.admin)

	plan = stage_rules.plan_dispatch(product, admin, retailer.id, fallback_warehouse_id=staff.id)
	assert plan.values["assigned_warehouse_id"] == staff.id

	with pytest.raises(ValidationError):
		stage_rules.plan_dispatch(product, admin, retailer.id)


def test_second_dispatch_is_invalid_stage(factory) -> None:
	staff = factory.user(UserRoleEnum.warehouse)
	retailer = factory.user(UserRoleEnum.retailer)
	product = factory.product(ProductStageEnum.in_warehouse, transporter=factory.user(UserRoleEnum.transporter))

	factory.apply(product, stage_rules.plan_dispatch(product, staff, retailer.id))

	with pytest.raises(InvalidStageTransition):
		stage_rules.plan_dispatch(product, staff, retailer.id)
	assert product.assigned_retailer_id == retailer.id


def test_listing_requires_the_assigned_retailer(factory) -> None:
	product = factory.product(
		ProductStageEnum.in_retail,
		transporter=factory.user(UserRoleEnum.transporter),
		warehouse=factory.user(UserRoleEnum.warehouse),
		retailer=factory.user(UserRoleEnum.retailer),
	)
	with pytest.raises(Forbidden):
		stage_rules.plan_listing(product, factory.user(UserRoleEnum.retailer))


def _retail_ready(factory):
	retailer = factory.user(UserRoleEnum.retailer)
	product = factory.product(
		ProductStageEnum.in_retail,
		transporter=factory.user(UserRoleEnum.transporter),
		warehouse=factory.user(UserRoleEnum.warehouse),
		retailer=retailer,
	)
	return retailer, product, factory.retail_record(product, retailer, stock=10)


def test_overselling_is_insufficient_stock_and_leaves_stock(factory) -> None:
	retailer, product, listing = _retail_ready(factory)

	with pytest.raises(InsufficientStock):
		stage_rules.plan_sale(product, listing, retailer, "9876543210", quantity=11)

	assert listing.stock == 10
	assert product.current_stage == ProductStageEnum.in_retail


def test_sale_requires_customer_phone(factory) -> None:
	retailer, product, listing = _retail_ready(factory)
	with pytest.raises(ValidationError) as excinfo:
		stage_rules.plan_sale(product, listing, retailer, "  ")
	assert excinfo.value.errors == [{"field": "customer_phone", "message": "Customer phone is required"}]


def test_sale_defaults_to_remaining_stock(factory) -> None:
	retailer, product, listing = _retail_ready(factory)

	plan, quantity = stage_rules.plan_sale(product, listing, retailer, "9876543210")

	assert quantity == 10
	assert plan.values == {
		"current_stage": ProductStageEnum.sold,
		"is_active": False,
		"customer_phone": "9876543210",
	}


def test_closed_listing_cannot_sell_again(factory) -> None:
	retailer, product, listing = _retail_ready(factory)
	listing.closed_at = factory.now
	with pytest.raises(InvalidStageTransition):
		stage_rules.plan_sale(product, listing, retailer, "9876543210")


def test_no_guard_moves_a_product_backward_or_skips(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	staff = factory.user(UserRoleEnum.warehouse)
	retailer = factory.user(UserRoleEnum.retailer)

	def attempts(product):
		leg = factory.transport(product, transporter)
		listing = factory.retail_record(product, retailer)
		return [
			lambda: stage_rules.plan_pickup(product, transporter),
			lambda: stage_rules.plan_delivery(product, leg, transporter),
			lambda: stage_rules.plan_intake(product, staff),
			lambda: stage_rules.plan_dispatch(product, staff, retailer.id),
			lambda: stage_rules.plan_listing(product, retailer),
			lambda: stage_rules.plan_sale(product, listing, retailer, "9876543210")[0],
		]

	for stage in ProductStageEnum:
		index = stage_rules.stage_index(stage)
		product = factory.product(
			stage,
			transporter=transporter if index >= 1 else None,
			warehouse=staff if index >= 3 else None,
			retailer=retailer if index >= 3 else None,
			customer_phone="9876543210" if stage == ProductStageEnum.sold else None,
		)
		for attempt in attempts(product):
			try:
				plan = attempt()
			except (InvalidStageTransition, Forbidden, ValidationError):
				continue
			assert stage_rules.stage_index(plan.target_stage) in (index, index + 1)


def test_inconsistent_state_is_refused(factory) -> None:
	product = factory.product(ProductStageEnum.in_retail, transporter=factory.user(UserRoleEnum.transporter))
	with pytest.raises(Internal):
		stage_rules.ensure_consistent(stage_rules.snapshot(product))

	sold_without_phone = factory.product(ProductStageEnum.sold)
	with pytest.raises(Internal):
		stage_rules.ensure_consistent(stage_rules.snapshot(sold_without_phone, {"customer_phone": None}))


def test_full_pipeline_scenario(factory) -> None:
	farmer = factory.farmer_profile()
	transporter = factory.user(UserRoleEnum.transporter, "Ravi Logistics")
	staff = factory.user(UserRoleEnum.warehouse, "Pune Cold Store")
	retailer = factory.user(UserRoleEnum.retailer, "Fresh Mart")
	product = factory.product(farmer=farmer, quantity=100)
	stage_rules.ensure_consistent(stage_rules.snapshot(product))

	factory.apply(product, stage_rules.plan_pickup(product, transporter))
	leg = factory.transport(product, transporter)
	factory.apply(product, stage_rules.plan_delivery(product, leg, transporter))
	leg.status = TransportStatusEnum.delivered
	factory.apply(product, stage_rules.plan_dispatch(product, staff, retailer.id))
	factory.apply(product, stage_rules.plan_listing(product, retailer))
	listing = factory.retail_record(product, retailer)
	plan, quantity = stage_rules.plan_sale(product, listing, retailer, "9876543210", quantity=100)
	factory.apply(product, plan)

	assert quantity == 100
	assert product.current_stage == ProductStageEnum.sold
	assert product.is_active is False
	assert product.customer_phone == "9876543210"

	journey = build_journey(product, [leg], [], [listing])
	assert [event.stage for event in journey] == ["Harvested", "In Transport", "In Warehouse", "In Retail", "Sold"]
	assert [event.order for event in journey] == [1, 2, 3, 4, 5]
