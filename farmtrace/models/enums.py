"""PostgreSQL-backed enum types for all ORM models.

Each StrEnum maps 1:1 to a PostgreSQL CREATE TYPE ... AS ENUM.
"""

from enum import StrEnum

# ── Pipeline enums ──────────────────────────────────────────────────────────


class ProductStageEnum(StrEnum):
    """Ordered supply-chain position of a product (declaration order matters)."""

    harvested = "harvested"
    in_transport = "in_transport"
    in_warehouse = "in_warehouse"
    in_retail = "in_retail"
    sold = "sold"


class TransportStatusEnum(StrEnum):
    """Lifecycle of a single transport leg."""

    in_transit = "in_transit"
    delivered = "delivered"


# ── Auth enums ──────────────────────────────────────────────────────────────


class UserRoleEnum(StrEnum):
    """User authorization roles for RBAC."""

    farmer = "farmer"
    transporter = "transporter"
    warehouse = "warehouse"
    retailer = "retailer"
    customer = "customer"
    admin = "admin"
