"""Admin routes: user management and the CSV report."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.auth.dependencies import require_role
from farmtrace.database import get_db
from farmtrace.errors import map_error
from farmtrace.models.enums import UserRoleEnum
from farmtrace.schemas.auth import UserListRead, UserRead
from farmtrace.services.product_service import ProductService
from farmtrace.services.report_service import ReportService, gzip_csv

router = APIRouter(prefix="/admin", tags=["admin"])

_admin = require_role(UserRoleEnum.admin)


@router.get("/users", response_model=UserListRead)
async def list_users(
	db: AsyncSession = Depends(get_db),
	_user=Depends(_admin),
) -> UserListRead:
	try:
		users = await ProductService(db).list_users()
	except Exception as exc:
		raise map_error(exc) from exc
	return UserListRead(items=[UserRead.model_validate(user) for user in users])


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
	user_id: uuid.UUID,
	db: AsyncSession = Depends(get_db),
	user=Depends(_admin),
) -> Response:
	try:
		await ProductService(db).delete_user(user, user_id)
	except Exception as exc:
		raise map_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/report")
async def export_report(
	db: AsyncSession = Depends(get_db),
	_user=Depends(_admin),
) -> StreamingResponse:
	try:
		rows = await ReportService(db).product_rows()
	except Exception as exc:
		raise map_error(exc) from exc
	filename = f"farmtrace-report-{datetime.now(UTC):%Y%m%d%H%M%S}.csv.gz"
	return StreamingResponse(
		gzip_csv(rows),
		media_type="application/gzip",
		headers={"content-disposition": f'attachment; filename="{filename}"'},
	)
