"""structlog configuration and per-request logging with request id propagation."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from farmtrace.config import LogFormat, get_settings

_configured = False

_QUIET_PREFIXES = ("/health",)


def configure_structured_logging() -> None:
	"""Configure stdlib + structlog once per process."""
	global _configured
	if _configured:
		return

	settings = get_settings()
	log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

	if settings.log_format == LogFormat.json:
		renderer: Any = structlog.processors.JSONRenderer()
		logging.basicConfig(level=log_level, format="%(message)s")
	else:
		renderer = structlog.dev.ConsoleRenderer()
		logging.basicConfig(level=log_level)

	structlog.configure(
		processors=[
			structlog.contextvars.merge_contextvars,
			structlog.processors.add_log_level,
			structlog.processors.TimeStamper(fmt="iso", utc=True),
			structlog.processors.format_exc_info,
			renderer,
		],
		wrapper_class=structlog.make_filtering_bound_logger(log_level),
		logger_factory=structlog.PrintLoggerFactory(),
		cache_logger_on_first_use=True,
	)
	_configured = True


def actor_fields(request: Request) -> dict[str, str]:
	"""Actor recorded on ``request.state`` by the auth dependency, if any."""
	actor_id = getattr(request.state, "actor_id", None)
	if actor_id is None:
		return {}
	return {"actor_id": actor_id, "actor_role": getattr(request.state, "actor_role", "")}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
	"""Bind ``request_id`` for the request's log lines and echo it back as ``x-request-id``."""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
		request.state.request_id = request_id

		structlog.contextvars.clear_contextvars()
		structlog.contextvars.bind_contextvars(
			request_id=request_id,
			method=request.method,
			path=request.url.path,
		)

		logger = structlog.get_logger("farmtrace.request")
		start = time.perf_counter()

		try:
			response = await call_next(request)
		except Exception as exc:
			logger.exception(
				"http_request_failed",
				duration_ms=round((time.perf_counter() - start) * 1000.0, 2),
				error=str(exc),
				**actor_fields(request),
			)
			raise

		response.headers["x-request-id"] = request_id
		if request.url.path.startswith(_QUIET_PREFIXES) and response.status_code < 400:
			return response

		duration_ms = round((time.perf_counter() - start) * 1000.0, 2)
		if response.status_code >= 500:
			logger.error(
				"http_request",
				status_code=response.status_code,
				duration_ms=duration_ms,
				**actor_fields(request),
			)
		else:
			logger.info(
				"http_request",
				status_code=response.status_code,
				duration_ms=duration_ms,
				**actor_fields(request),
			)
		return response
