"""FarmerProfile and Product ORM models: the pipeline's central entities.

A ``Product`` is owned by exactly one ``FarmerProfile`` and picks up
transporter / warehouse / retailer assignments as it advances through
``ProductStageEnum``.  Stage changes are only ever written through the
transition service's conditional updates.
"""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import (
    Boolean,
    Date,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from farmtrace.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from farmtrace.models.enums import ProductStageEnum
from farmtrace.models.user import User

# ═══════════════════════════════════════════════════════════════════════════
# FarmerProfile
# ═══════════════════════════════════════════════════════════════════════════


class FarmerProfile(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """Contact and location data for one farmer user.

    Consumed by pickup queries (transporters need the farm address) and by
    the journey's "Harvested" event.  Every column except ``user_id`` is
    optional; readers substitute placeholder text for missing values.
    """

    __tablename__ = "farmer_profiles"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    address: Mapped[str | None] = mapped_column(String(500), nullable=True)
    pincode: Mapped[str | None] = mapped_column(String(12), nullable=True)
    farm_size: Mapped[str | None] = mapped_column(String(100), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # ── Relationships ────────────────────────────────────────────────────
    user: Mapped[User] = relationship(lazy="selectin")

    def __repr__(self) -> str:
        return f"<FarmerProfile id={self.id} name={self.name!r} user={self.user_id}>"


# ═══════════════════════════════════════════════════════════════════════════
# Product
# ═══════════════════════════════════════════════════════════════════════════


class Product(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A harvested lot moving through the supply chain.

    ``product_code`` is the opaque identifier customers use for tracking;
    ``id`` stays internal.  ``customer_phone`` is only set once the product
    is ``sold``.
    """

    __tablename__ = "products"
    __table_args__ = (
        Index("ix_products_stage_active", "current_stage", "is_active"),
        Index("ix_products_customer_phone", "customer_phone"),
    )

    product_code: Mapped[str] = mapped_column(
        String(40), unique=True, nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    quality: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        default="Good",
        server_default=text("'Good'"),
    )
    price: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    harvest_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    current_stage: Mapped[ProductStageEnum] = mapped_column(
        Enum(
            ProductStageEnum,
            name="product_stage",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
        default=ProductStageEnum.harvested,
        server_default=ProductStageEnum.harvested.value,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default=text("true"),
        nullable=False,
    )
    customer_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    farmer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("farmer_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_transporter_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    assigned_warehouse_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    assigned_retailer_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    # ── Relationships ────────────────────────────────────────────────────
    farmer: Mapped[FarmerProfile] = relationship(lazy="selectin")
    assigned_transporter: Mapped[User | None] = relationship(
        foreign_keys=[assigned_transporter_id],
        lazy="selectin",
    )
    assigned_warehouse: Mapped[User | None] = relationship(
        foreign_keys=[assigned_warehouse_id],
        lazy="selectin",
    )
    assigned_retailer: Mapped[User | None] = relationship(
        foreign_keys=[assigned_retailer_id],
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<Product id={self.id} code={self.product_code!r} "
            f"stage={self.current_stage}>"
        )
