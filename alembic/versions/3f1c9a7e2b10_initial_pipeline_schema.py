"""initial_pipeline_schema

Revision ID: 3f1c9a7e2b10
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates users, farmer profiles, products and the three stage-record tables
plus the product_stage / transport_status / user_role enum types.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3f1c9a7e2b10"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUM_PRODUCT_STAGE = postgresql.ENUM(
    "harvested",
    "in_transport",
    "in_warehouse",
    "in_retail",
    "sold",
    name="product_stage",
    create_type=False,
)
ENUM_TRANSPORT_STATUS = postgresql.ENUM(
    "in_transit", "delivered", name="transport_status", create_type=False
)
ENUM_USER_ROLE = postgresql.ENUM(
    "farmer",
    "transporter",
    "warehouse",
    "retailer",
    "customer",
    "admin",
    name="user_role",
    create_type=False,
)


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("uuid_generate_v4()"),
        nullable=False,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _user_fk(column: str, ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(
        column,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("users.id", ondelete=ondelete),
        nullable=nullable,
    )


def _product_fk() -> sa.Column:
    return sa.Column(
        "product_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')
    bind = op.get_bind()
    for enum in (ENUM_PRODUCT_STAGE, ENUM_TRANSPORT_STATUS, ENUM_USER_ROLE):
        enum.create(bind, checkfirst=True)

    # ── users ───────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _id(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("hashed_password", sa.String(length=128), nullable=False),
        sa.Column("role", ENUM_USER_ROLE, nullable=False, server_default=sa.text("'customer'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ── farmer_profiles ─────────────────────────────────────────────────
    op.create_table(
        "farmer_profiles",
        _id(),
        _user_fk("user_id"),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("location", sa.String(length=200), nullable=True),
        sa.Column("address", sa.String(length=500), nullable=True),
        sa.Column("pincode", sa.String(length=12), nullable=True),
        sa.Column("farm_size", sa.String(length=100), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id"),
    )

    # ── products ────────────────────────────────────────────────────────
    op.create_table(
        "products",
        _id(),
        sa.Column("product_code", sa.String(length=40), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("quality", sa.String(length=50), nullable=False, server_default=sa.text("'Good'")),
        sa.Column("price", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("harvest_date", sa.Date(), nullable=True),
        sa.Column("current_stage", ENUM_PRODUCT_STAGE, nullable=False, server_default=sa.text("'harvested'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("customer_phone", sa.String(length=20), nullable=True),
        sa.Column(
            "farmer_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("farmer_profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("assigned_transporter_id", ondelete="SET NULL", nullable=True),
        _user_fk("assigned_warehouse_id", ondelete="SET NULL", nullable=True),
        _user_fk("assigned_retailer_id", ondelete="SET NULL", nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_products_product_code", "products", ["product_code"], unique=True)
    op.create_index("ix_products_farmer_id", "products", ["farmer_id"])
    op.create_index("ix_products_assigned_transporter_id", "products", ["assigned_transporter_id"])
    op.create_index("ix_products_assigned_warehouse_id", "products", ["assigned_warehouse_id"])
    op.create_index("ix_products_assigned_retailer_id", "products", ["assigned_retailer_id"])
    op.create_index("ix_products_stage_active", "products", ["current_stage", "is_active"])
    op.create_index("ix_products_customer_phone", "products", ["customer_phone"])

    # ── stage records ───────────────────────────────────────────────────
    op.create_table(
        "transport_records",
        _id(),
        _product_fk(),
        _user_fk("transporter_id"),
        sa.Column("from_location", sa.String(length=255), nullable=False),
        sa.Column("to_location", sa.String(length=255), nullable=False),
        sa.Column("status", ENUM_TRANSPORT_STATUS, nullable=False, server_default=sa.text("'in_transit'")),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_transport_records_transporter_id", "transport_records", ["transporter_id"])
    op.create_index("ix_transport_records_product_created", "transport_records", ["product_id", "created_at"])

    op.create_table(
        "warehouse_records",
        _id(),
        _product_fk(),
        _user_fk("warehouse_staff_id"),
        sa.Column("storage_location", sa.String(length=255), nullable=False),
        sa.Column("temperature", sa.String(length=50), nullable=False),
        sa.Column("stored_date", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_warehouse_records_warehouse_staff_id", "warehouse_records", ["warehouse_staff_id"])
    op.create_index("ix_warehouse_records_product_created", "warehouse_records", ["product_id", "created_at"])

    op.create_table(
        "retail_records",
        _id(),
        _product_fk(),
        _user_fk("retailer_id"),
        sa.Column("shop_name", sa.String(length=255), nullable=False),
        sa.Column("selling_price", sa.Float(), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False),
        sa.Column("sold_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("customer_phone", sa.String(length=20), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_retail_records_retailer_id", "retail_records", ["retailer_id"])
    op.create_index("ix_retail_records_product_created", "retail_records", ["product_id", "created_at"])
    op.create_index("ix_retail_records_customer_phone", "retail_records", ["customer_phone"])


def downgrade() -> None:
    op.drop_table("retail_records")
    op.drop_table("warehouse_records")
    op.drop_table("transport_records")
    op.drop_table("products")
    op.drop_table("farmer_profiles")
    op.drop_table("users")

    bind = op.get_bind()
    for enum in (ENUM_USER_ROLE, ENUM_TRANSPORT_STATUS, ENUM_PRODUCT_STAGE):
        enum.drop(bind, checkfirst=True)
