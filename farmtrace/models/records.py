"""Stage record ORM models: one row per handling event per product.

Several records of a kind may exist for one product (multiple transport
legs, re-shelving).  The newest is authoritative for current
state; all are kept for journey reconstruction.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Float, ForeignKey, Index, Integer, String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farmtrace.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from farmtrace.models.enums import TransportStatusEnum
from farmtrace.models.product import Product
from farmtrace.models.user import User

# ═══════════════════════════════════════════════════════════════════════════
# TransportRecord
# ═══════════════════════════════════════════════════════════════════════════


class TransportRecord(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A pickup-to-drop leg.  ``delivered`` is terminal."""

    __tablename__ = "transport_records"
    __table_args__ = (
        Index("ix_transport_records_product_created", "product_id", "created_at"),
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    transporter_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    from_location: Mapped[str] = mapped_column(String(255), nullable=False)
    to_location: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[TransportStatusEnum] = mapped_column(
        Enum(
            TransportStatusEnum,
            name="transport_status",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
        default=TransportStatusEnum.in_transit,
        server_default=TransportStatusEnum.in_transit.value,
    )
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # ── Relationships ────────────────────────────────────────────────────
    product: Mapped[Product] = relationship(lazy="selectin")
    transporter: Mapped[User] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return (
            f"<TransportRecord id={self.id} product={self.product_id} "
            f"status={self.status}>"
        )


# ═══════════════════════════════════════════════════════════════════════════
# WarehouseRecord
# ═══════════════════════════════════════════════════════════════════════════


class WarehouseRecord(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Storage entry.  ``temperature`` holds the storage type (Cold/Normal…)."""

    __tablename__ = "warehouse_records"
    __table_args__ = (
        Index("ix_warehouse_records_product_created", "product_id", "created_at"),
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    warehouse_staff_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    storage_location: Mapped[str] = mapped_column(String(255), nullable=False)
    temperature: Mapped[str] = mapped_column(String(50), nullable=False)
    stored_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # ── Relationships ────────────────────────────────────────────────────
    product: Mapped[Product] = relationship(lazy="selectin")
    warehouse_staff: Mapped[User] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<WarehouseRecord id={self.id} product={self.product_id}>"


# ═══════════════════════════════════════════════════════════════════════════
# RetailRecord
# ═══════════════════════════════════════════════════════════════════════════


class RetailRecord(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A shelf listing.  ``closed_at`` is set when the sale completes."""

    __tablename__ = "retail_records"
    __table_args__ = (
        Index("ix_retail_records_product_created", "product_id", "created_at"),
        Index("ix_retail_records_customer_phone", "customer_phone"),
        Index(
            "uq_retail_records_open_listing",
            "product_id",
            unique=True,
            postgresql_where=text("closed_at IS NULL"),
        ),
    )

    product_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    retailer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    shop_name: Mapped[str] = mapped_column(String(255), nullable=False)
    selling_price: Mapped[float] = mapped_column(Float, nullable=False)
    stock: Mapped[int] = mapped_column(Integer, nullable=False)
    sold_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    customer_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # ── Relationships ────────────────────────────────────────────────────
    product: Mapped[Product] = relationship(lazy="selectin")
    retailer: Mapped[User] = relationship(lazy="selectin")

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    def __repr__(self) -> str:
        return (
            f"<RetailRecord id={self.id} product={self.product_id} "
            f"stock={self.stock}>"
        )
