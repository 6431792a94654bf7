"""Admin CSV export, gzip-compressed and streamed row batch by row batch."""

from __future__ import annotations

import csv
import io
import zlib
from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.models.product import Product
from farmtrace.models.records import RetailRecord, TransportRecord, WarehouseRecord
from farmtrace.services.journey import stage_label

REPORT_COLUMNS = [
	"product_id",
	"product_code",
	"product_name",
	"farmer_id",
	"quantity",
	"quality",
	"price",
	"current_stage",
	"stage_label",
	"is_active",
	"customer_phone",
	"assigned_transporter_id",
	"assigned_warehouse_id",
	"assigned_retailer_id",
	"transport_legs",
	"warehouse_entries",
	"retail_listings",
	"created_at",
	"updated_at",
]

_BATCH_ROWS = 500


def _count_by_product(model: Any) -> Any:
	return (
		select(model.product_id, func.count(model.id).label("n"))
		.group_by(model.product_id)
		.subquery()
	)


def _cell(value: Any) -> Any:
	return "" if value is None else value


class ReportService:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def product_rows(self) -> list[list[Any]]:
		transport = _count_by_product(TransportRecord)
		warehouse = _count_by_product(WarehouseRecord)
		retail = _count_by_product(RetailRecord)
		stmt = (
			select(
				Product,
				func.coalesce(transport.c.n, 0),
				func.coalesce(warehouse.c.n, 0),
				func.coalesce(retail.c.n, 0),
			)
			.outerjoin(transport, transport.c.product_id == Product.id)
			.outerjoin(warehouse, warehouse.c.product_id == Product.id)
			.outerjoin(retail, retail.c.product_id == Product.id)
			.order_by(Product.created_at.asc())
		)
		rows = await self.db.execute(stmt)
		return [self.to_row(product, legs, entries, listings) for product, legs, entries, listings in rows.all()]

	@staticmethod
	def to_row(product: Any, legs: int, entries: int, listings: int) -> list[Any]:
		return [
			product.id,
			product.product_code,
			product.name,
			product.farmer_id,
			product.quantity,
			product.quality,
			product.price,
			str(product.current_stage),
			stage_label(product.current_stage),
			product.is_active,
			_cell(product.customer_phone),
			_cell(product.assigned_transporter_id),
			_cell(product.assigned_warehouse_id),
			_cell(product.assigned_retailer_id),
			legs,
			entries,
			listings,
			_cell(product.created_at and product.created_at.isoformat()),
			_cell(product.updated_at and product.updated_at.isoformat()),
		]


async def gzip_csv(rows: list[list[Any]]) -> AsyncIterator[bytes]:
	"""Yield a gzip stream of ``REPORT_COLUMNS`` followed by ``rows``."""
	compressor = zlib.compressobj(wbits=zlib.MAX_WBITS | 16)
	buffer = io.StringIO()
	writer = csv.writer(buffer)
	writer.writerow(REPORT_COLUMNS)
	for start in range(0, len(rows), _BATCH_ROWS):
		writer.writerows(rows[start : start + _BATCH_ROWS])
		chunk = compressor.compress(buffer.getvalue().encode("utf-8"))
		buffer.seek(0)
		buffer.truncate(0)
		if chunk:
			yield chunk
	tail = compressor.compress(buffer.getvalue().encode("utf-8")) + compressor.flush()
	yield tail
