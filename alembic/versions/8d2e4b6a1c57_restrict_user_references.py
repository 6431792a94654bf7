"""restrict_user_references

Revision ID: 8d2e4b6a1c57
Revises: 3f1c9a7e2b10
Create Date: 2026-10-17 12:00:00.000000

Users referenced by a product assignment or a stage record can no longer be
deleted underneath the pipeline, and a product may carry at most one open
retail listing.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "8d2e4b6a1c57"
down_revision: str | None = "3f1c9a7e2b10"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# (table, column, ondelete before this revision)
USER_REFERENCES = (
    ("products", "assigned_transporter_id", "SET NULL"),
    ("products", "assigned_warehouse_id", "SET NULL"),
    ("products", "assigned_retailer_id", "SET NULL"),
    ("transport_records", "transporter_id", "CASCADE"),
    ("warehouse_records", "warehouse_staff_id", "CASCADE"),
    ("retail_records", "retailer_id", "CASCADE"),
)


def _recreate_fk(table: str, column: str, ondelete: str) -> None:
    name = f"{table}_{column}_fkey"
    op.drop_constraint(name, table, type_="foreignkey")
    op.create_foreign_key(name, table, "users", [column], ["id"], ondelete=ondelete)


def upgrade() -> None:
    for table, column, _previous in USER_REFERENCES:
        _recreate_fk(table, column, "RESTRICT")

    op.create_index(
        "uq_retail_records_open_listing",
        "retail_records",
        ["product_id"],
        unique=True,
        postgresql_where=sa.text("closed_at IS NULL"),
    )


def downgrade() -> None:
    op.drop_index("uq_retail_records_open_listing", table_name="retail_records")

    for table, column, previous in USER_REFERENCES:
        _recreate_fk(table, column, previous)
