"""Pipeline error taxonomy and its mapping onto HTTP responses.

Services raise ``PipelineError`` subclasses; routes translate them with
``map_error`` so every rejected operation carries a stable ``error`` code
and a human-readable ``message``.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = structlog.get_logger("farmtrace.errors")


class PipelineError(Exception):
	"""Base class for every rejected pipeline operation."""

	status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
	code: str = "internal"

	def __init__(self, message: str, errors: list[dict[str, str]] | None = None) -> None:
		super().__init__(message)
		self.message = message
		self.errors = errors or []

	def to_detail(self) -> dict[str, Any]:
		detail: dict[str, Any] = {"error": self.code, "message": self.message}
		if self.errors:
			detail["errors"] = self.errors
		return detail


class ValidationError(PipelineError):
	status_code = status.HTTP_400_BAD_REQUEST
	code = "validation_error"

	@classmethod
	def missing(cls, field: str, message: str | None = None) -> ValidationError:
		text = message or f"{field} is required"
		return cls(text, errors=[{"field": field, "message": text}])


class Forbidden(PipelineError):
	status_code = status.HTTP_403_FORBIDDEN
	code = "forbidden"


class NotFound(PipelineError):
	status_code = status.HTTP_404_NOT_FOUND
	code = "not_found"


class InvalidStageTransition(PipelineError):
	"""The product is not in the stage the operation requires."""

	status_code = status.HTTP_400_BAD_REQUEST
	code = "invalid_stage_transition"

	def __init__(self, message: str, current: str | None = None, required: str | None = None) -> None:
		super().__init__(message)
		self.current = current
		self.required = required

	def to_detail(self) -> dict[str, Any]:
		detail = super().to_detail()
		if self.current is not None:
			detail["current_stage"] = self.current
		if self.required is not None:
			detail["required_stage"] = self.required
		return detail


class InsufficientStock(PipelineError):
	status_code = status.HTTP_400_BAD_REQUEST
	code = "insufficient_stock"


class Conflict(PipelineError):
	"""A conditional write lost the race against a concurrent transition."""

	status_code = status.HTTP_409_CONFLICT
	code = "conflict"


class Internal(PipelineError):
	status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
	code = "internal"


def map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, HTTPException):
		return exc
	if not isinstance(exc, PipelineError):
		logger.exception("unexpected_service_failure", error=str(exc), error_type=type(exc).__name__)
		exc = Internal("Unexpected pipeline failure")
	return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def _field_path(loc: tuple[Any, ...] | list[Any]) -> str:
	return ".".join(str(part) for part in loc if part != "body") or "body"


async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
	"""Report malformed request payloads as 400 ``validation_error``."""
	errors = [
		{"field": _field_path(item.get("loc", ())), "message": str(item.get("msg", "invalid value"))}
		for item in exc.errors()
	]
	return JSONResponse(
		status_code=status.HTTP_400_BAD_REQUEST,
		content={
			"detail": {
				"error": ValidationError.code,
				"message": "Request validation failed",
				"errors": errors,
			}
		},
	)
