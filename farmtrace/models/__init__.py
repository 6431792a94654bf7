"""ORM model registry — importing this module registers every table on Base.metadata.

Alembic ``env.py`` imports ``Base`` from here (not from ``base.py``) so that
autogenerate sees all tables.  Application code can also do::

    from farmtrace.models import Product, TransportRecord, ...
"""

# ── Base & Mixins ───────────────────────────────────────────────────────────
from farmtrace.models.base import (
    Base,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)

# ── Enums ───────────────────────────────────────────────────────────────────
from farmtrace.models.enums import (
    ProductStageEnum,
    TransportStatusEnum,
    UserRoleEnum,
)

# ── Pipeline models ─────────────────────────────────────────────────────────
from farmtrace.models.product import FarmerProfile, Product
from farmtrace.models.records import RetailRecord, TransportRecord, WarehouseRecord

# ── Users ───────────────────────────────────────────────────────────────────
from farmtrace.models.user import User

__all__ = [
    # Base & mixins
    "Base",
    # Pipeline
    "FarmerProfile",
    "Product",
    # Enums
    "ProductStageEnum",
    "RetailRecord",
    "TimestampMixin",
    "TransportRecord",
    "TransportStatusEnum",
    "UUIDPrimaryKeyMixin",
    # Users
    "User",
    "UserRoleEnum",
    "WarehouseRecord",
]
