from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from farmtrace.errors import Conflict, Forbidden, InvalidStageTransition, NotFound, ValidationError
from farmtrace.models.enums import ProductStageEnum, UserRoleEnum
from farmtrace.schemas.product import ProductUpdate
from farmtrace.services.product_service import ProductService, _user_is_referenced


def _statement(fake_db_session, call: int):
	return fake_db_session.execute.await_args_list[call].args[0]


@pytest.mark.asyncio
async def test_assigned_retailer_cannot_be_deleted(fake_db_session, factory) -> None:
	admin = factory.user(UserRoleEnum.admin)
	retailer = factory.user(UserRoleEnum.retailer)
	fake_db_session.execute.side_effect = [factory.result(retailer), factory.result(True)]

	with pytest.raises(Conflict):
		await ProductService(fake_db_session).delete_user(admin, retailer.id)

	fake_db_session.delete.assert_not_awaited()
	fake_db_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_unreferenced_user_is_deleted(fake_db_session, factory) -> None:
	admin = factory.user(UserRoleEnum.admin)
	customer = factory.user(UserRoleEnum.customer)
	fake_db_session.execute.side_effect = [factory.result(customer), factory.result(False)]

	await ProductService(fake_db_session).delete_user(admin, customer.id)

	fake_db_session.delete.assert_awaited_once_with(customer)
	fake_db_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_admin_cannot_delete_self(fake_db_session, factory) -> None:
	admin = factory.user(UserRoleEnum.admin)

	with pytest.raises(ValidationError):
		await ProductService(fake_db_session).delete_user(admin, admin.id)
	fake_db_session.execute.assert_not_awaited()


def test_user_reference_check_covers_assignments_and_stage_records(factory) -> None:
	user = factory.user(UserRoleEnum.transporter)

	compiled = select(_user_is_referenced(user.id)).compile(dialect=postgresql.dialect())
	sql = str(compiled)

	for column in (
		"assigned_transporter_id",
		"assigned_warehouse_id",
		"assigned_retailer_id",
		"transporter_id",
		"warehouse_staff_id",
		"retailer_id",
		"farmer_profiles.user_id",
	):
		assert column in sql
	assert user.id in compiled.params.values()


@pytest.mark.asyncio
async def test_farmer_edits_descriptive_fields_of_harvested_product(fake_db_session, factory) -> None:
	farmer_user = factory.user(UserRoleEnum.farmer)
	product = factory.product(farmer=factory.farmer_profile(farmer_user))
	fake_db_session.execute.side_effect = [factory.result(product), factory.result(rowcount=1)]

	updated = await ProductService(fake_db_session).update_product(
		farmer_user,
		product.id,
		ProductUpdate(name="Cherry Tomatoes", quantity=80),
	)

	assert updated is product
	params = _statement(fake_db_session, 1).compile(dialect=postgresql.dialect()).params
	assert params["name"] == "Cherry Tomatoes"
	assert params["quantity"] == 80
	assert "current_stage" not in params
	assert ProductStageEnum.harvested in params.values()
	fake_db_session.commit.assert_awaited_once()


@pytest.mark.asyncio
async def test_quantity_is_fixed_after_pickup(fake_db_session, factory) -> None:
	farmer_user = factory.user(UserRoleEnum.farmer)
	product = factory.product(
		ProductStageEnum.in_transport,
		farmer=factory.farmer_profile(farmer_user),
		transporter=factory.user(UserRoleEnum.transporter),
	)
	fake_db_session.execute.return_value = factory.result(product)

	with pytest.raises(InvalidStageTransition) as excinfo:
		await ProductService(fake_db_session).update_product(farmer_user, product.id, ProductUpdate(quantity=500))

	assert excinfo.value.required == "harvested"
	assert fake_db_session.execute.await_count == 1


@pytest.mark.asyncio
async def test_quality_edit_allowed_in_transit(fake_db_session, factory) -> None:
	admin = factory.user(UserRoleEnum.admin)
	product = factory.product(ProductStageEnum.in_transport, transporter=factory.user(UserRoleEnum.transporter))
	fake_db_session.execute.side_effect = [factory.result(product), factory.result(rowcount=1)]

	await ProductService(fake_db_session).update_product(admin, product.id, ProductUpdate(quality="Premium"))

	params = _statement(fake_db_session, 1).compile(dialect=postgresql.dialect()).params
	assert params["quality"] == "Premium"
	assert ProductStageEnum.in_transport not in params.values()


@pytest.mark.asyncio
async def test_sold_product_cannot_be_edited(fake_db_session, factory) -> None:
	admin = factory.user(UserRoleEnum.admin)
	product = factory.product(
		ProductStageEnum.sold,
		transporter=factory.user(UserRoleEnum.transporter),
		warehouse=factory.user(UserRoleEnum.warehouse),
		retailer=factory.user(UserRoleEnum.retailer),
		customer_phone="9876543210",
	)
	fake_db_session.execute.return_value = factory.result(product)

	with pytest.raises(InvalidStageTransition):
		await ProductService(fake_db_session).update_product(admin, product.id, ProductUpdate(name="Renamed"))
	fake_db_session.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_farmer_cannot_edit_another_farmers_product(fake_db_session, factory) -> None:
	product = factory.product()
	fake_db_session.execute.return_value = factory.result(product)

	with pytest.raises(Forbidden):
		await ProductService(fake_db_session).update_product(
			factory.user(UserRoleEnum.farmer),
			product.id,
			ProductUpdate(name="Mine now"),
		)


@pytest.mark.asyncio
async def test_concurrent_pickup_during_quantity_edit_is_conflict(fake_db_session, factory) -> None:
	farmer_user = factory.user(UserRoleEnum.farmer)
	product = factory.product(farmer=factory.farmer_profile(farmer_user))
	fake_db_session.execute.side_effect = [factory.result(product), factory.result(rowcount=0)]

	with pytest.raises(Conflict):
		await ProductService(fake_db_session).update_product(farmer_user, product.id, ProductUpdate(quantity=90))
	fake_db_session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_farmer_profile_with_products_is_kept(fake_db_session, factory) -> None:
	admin = factory.user(UserRoleEnum.admin)
	profile = factory.farmer_profile()
	fake_db_session.execute.side_effect = [factory.result(profile), factory.result(True)]

	with pytest.raises(Conflict):
		await ProductService(fake_db_session).delete_farmer(admin, profile.id)
	fake_db_session.delete.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_farmer_profile(fake_db_session, factory) -> None:
	fake_db_session.execute.return_value = factory.result(None)

	with pytest.raises(NotFound):
		await ProductService(fake_db_session).get_farmer(factory.farmer_profile().id)
