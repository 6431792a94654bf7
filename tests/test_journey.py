from __future__ import annotations

from datetime import timedelta

import pytest
from httpx import AsyncClient

from farmtrace.models.enums import ProductStageEnum, TransportStatusEnum, UserRoleEnum
from farmtrace.services.journey import STAGE_LABELS, build_journey, last_updated, stage_label
from farmtrace.services.journey_service import JourneyService


def test_every_stage_has_a_label() -> None:
	assert {stage: stage_label(stage) for stage in ProductStageEnum} == STAGE_LABELS
	assert stage_label("lost_in_space") == "Unknown Status"


def test_harvested_only_uses_placeholders_for_missing_farmer(factory) -> None:
	product = factory.product(farmer=factory.farmer_profile(name=None, location=None))

	journey = build_journey(product)

	assert len(journey) == 1
	event = journey[0]
	assert (event.stage, event.location, event.handler) == ("Harvested", "Farm", "Farmer")
	assert event.notes == "Product harvested by farmer"
	assert event.timestamp == product.created_at


def test_in_transport_event_reflects_open_leg(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter, "Ravi Logistics")
	product = factory.product(ProductStageEnum.in_transport, transporter=transporter)
	leg = factory.transport(product, transporter)

	journey = build_journey(product, [leg])

	assert journey[1].status == "In Transit"
	assert journey[1].location == "En route to Pune Cold Store"
	assert journey[1].handler == "Ravi Logistics"
	assert journey[1].timestamp == leg.date


def test_warehouse_event_uses_first_storage_record(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	staff = factory.user(UserRoleEnum.warehouse, "Pune Cold Store")
	product = factory.product(ProductStageEnum.in_warehouse, transporter=transporter, warehouse=staff)
	first = factory.warehouse_record(product, staff, storage_location="A-3", temperature="Cold")
	second = factory.warehouse_record(
		product,
		staff,
		storage_location="B-9",
		temperature="Normal",
		stored_date=first.stored_date + timedelta(days=2),
	)

	journey = build_journey(product, [factory.transport(product, transporter)], [first, second])

	warehouse_event = journey[2]
	assert warehouse_event.status == "In Storage"
	assert warehouse_event.notes == "Stored at Pune Cold Store (Shelf: A-3, Storage Type: Cold)"
	assert warehouse_event.storage_location == "A-3"
	assert warehouse_event.timestamp == first.stored_date
	assert journey[1].status == "Delivered"


def test_order_follows_pipeline_not_timestamps(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	staff = factory.user(UserRoleEnum.warehouse)
	retailer = factory.user(UserRoleEnum.retailer)
	product = factory.product(
		ProductStageEnum.in_retail,
		transporter=transporter,
		warehouse=staff,
		retailer=retailer,
	)
	skewed_leg = factory.transport(product, transporter, date=product.created_at - timedelta(days=30))
	skewed_listing = factory.retail_record(product, retailer, created_at=product.created_at - timedelta(days=60))

	journey = build_journey(product, [skewed_leg], [], [skewed_listing])

	assert [event.stage for event in journey] == ["Harvested", "In Transport", "In Warehouse", "In Retail"]
	assert [event.order for event in journey] == [1, 2, 3, 4]
	assert journey[3].status == "Available for Sale"
	assert journey[3].location == "Fresh Mart"


def test_reconstruction_is_idempotent(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	product = factory.product(ProductStageEnum.in_transport, transporter=transporter)
	legs = [factory.transport(product, transporter, status=TransportStatusEnum.in_transit)]

	assert build_journey(product, legs) == build_journey(product, legs)


def test_sold_event_and_last_updated(factory) -> None:
	retailer = factory.user(UserRoleEnum.retailer)
	product = factory.product(
		ProductStageEnum.sold,
		transporter=factory.user(UserRoleEnum.transporter),
		warehouse=factory.user(UserRoleEnum.warehouse),
		retailer=retailer,
		customer_phone="9876543210",
		updated_at=factory.now + timedelta(days=3),
	)

	journey = build_journey(product)

	assert journey[-1].stage == "Sold"
	assert journey[-1].notes == "Sold to customer (9876543210)"
	assert journey[3].status == "Sold"
	assert last_updated(product, journey) == product.updated_at


def test_tracking_response_status_comes_from_label_table(factory) -> None:
	product = factory.product(ProductStageEnum.in_transport, transporter=factory.user(UserRoleEnum.transporter))

	response = JourneyService.to_tracking(product, [], [], [])

	assert response.current_status == "In Transport"
	assert response.product.farmer is not None
	assert response.product.farmer.location == "Nashik"
	assert response.product.warehouse is None


@pytest.mark.asyncio
async def test_track_by_id_and_by_code_match(
	client: AsyncClient,
	factory,
	monkeypatch: pytest.MonkeyPatch,
) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	product = factory.product(ProductStageEnum.in_transport, transporter=transporter)
	legs = [factory.transport(product, transporter)]

	async def fake_load(self: JourneyService, _condition: object) -> object:
		return product

	async def fake_records(self: JourneyService, model: object, _product_id: object) -> list[object]:
		return legs if model.__name__ == "TransportRecord" else []

	monkeypatch.setattr(JourneyService, "_load_product", fake_load)
	monkeypatch.setattr(JourneyService, "_records", fake_records)

	by_id = await client.get(f"/api/v1/customer/track/{product.id}")
	by_code = await client.get(f"/api/v1/customer/track-by-code/{product.product_code}")

	assert by_id.status_code == 200
	assert by_id.json() == by_code.json()
	body = by_id.json()
	assert body["current_status"] == "In Transport"
	assert [event["stage"] for event in body["journey"]] == ["Harvested", "In Transport"]
	assert len(body["transport_records"]) == 1


@pytest.mark.asyncio
async def test_unknown_product_code_is_not_found(client: AsyncClient, monkeypatch: pytest.MonkeyPatch) -> None:
	async def fake_load(self: JourneyService, _condition: object) -> object:
		return None

	monkeypatch.setattr(JourneyService, "_load_product", fake_load)

	response = await client.get("/api/v1/customer/track-by-code/PC000")
	assert response.status_code == 404
	assert response.json()["detail"]["error"] == "not_found"


@pytest.mark.asyncio
async def test_purchases_by_phone(client: AsyncClient, fake_db_session, factory) -> None:
	sold = factory.product(
		ProductStageEnum.sold,
		transporter=factory.user(UserRoleEnum.transporter),
		warehouse=None,
		retailer=factory.user(UserRoleEnum.retailer, "Fresh Mart"),
		customer_phone="9876543210",
	)
	fake_db_session.execute.return_value = factory.result(items=[sold])

	response = await client.get("/api/v1/customer/purchases/9876543210")

	assert response.status_code == 200
	items = response.json()["items"]
	assert len(items) == 1
	assert items[0]["product_code"] == sold.product_code
	assert items[0]["warehouse"]["name"] == "Not assigned"
	assert items[0]["retailer"]["name"] == "Fresh Mart"


def test_transport_destination_prefers_assigned_warehouse(factory) -> None:
	transporter = factory.user(UserRoleEnum.transporter)
	staff = factory.user(UserRoleEnum.warehouse, "Nashik Agri Depot")
	product = factory.product(ProductStageEnum.in_warehouse, transporter=transporter, warehouse=staff)
	leg = factory.transport(product, transporter, to_location="Pune Cold Store", status=TransportStatusEnum.delivered)

	journey = build_journey(product, [leg])

	assert journey[1].location == "En route to Nashik Agri Depot"
	assert journey[1].status == "Delivered"


def test_transport_destination_without_leg_or_warehouse(factory) -> None:
	product = factory.product(ProductStageEnum.in_transport, transporter=factory.user(UserRoleEnum.transporter))

	journey = build_journey(product)

	assert journey[1].location == "En route to warehouse"
	assert journey[1].timestamp == product.updated_at
