"""Per-IP quota on the public customer endpoints, backed by Redis counters."""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from farmtrace.auth.dependencies import extract_client_ip
from farmtrace.config import get_settings

PUBLIC_PREFIX = "/api/v1/customer"

logger = structlog.get_logger("farmtrace.rate_limit")


class RateLimitMiddleware(BaseHTTPMiddleware):
	"""Fixed one-minute windows keyed by client IP; skipped without Redis."""

	async def dispatch(self, request: Request, call_next):  # type: ignore[override]
		if not request.url.path.startswith(PUBLIC_PREFIX):
			return await call_next(request)

		redis_client = getattr(request.app.state, "redis", None)
		if redis_client is None:
			return await call_next(request)

		quota = get_settings().rate_limit_public_per_minute
		client_ip = extract_client_ip(request)
		minute_bucket = datetime.now(UTC).strftime("%Y%m%d%H%M")
		key = f"ratelimit:public:{client_ip}:{minute_bucket}"
		try:
			current = await redis_client.incr(key)
			if current == 1:
				await redis_client.expire(key, 65)
		except (RedisError, OSError) as exc:
			logger.warning("rate_limit_unavailable", error=str(exc))
			return await call_next(request)

		if current > quota:
			return JSONResponse(
				status_code=429,
				content={
					"detail": {
						"error": "rate_limited",
						"message": "Too many tracking requests, try again in a minute",
						"quota": quota,
					}
				},
			)

		return await call_next(request)
