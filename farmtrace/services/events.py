"""Live pipeline events published to Redis after each committed change."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import Request
from redis.asyncio import Redis
from redis.exceptions import RedisError

from farmtrace.config import get_settings
from farmtrace.services.journey import stage_label

logger = structlog.get_logger("farmtrace.events")


class EventPublisher:
	"""Fire-and-forget publisher; a broken Redis never fails a transition."""

	def __init__(self, redis_client: Redis | None, channel: str | None = None):
		self.redis_client = redis_client
		self.channel = channel or get_settings().live_channel

	@classmethod
	def from_request(cls, request: Request) -> EventPublisher:
		return cls(getattr(request.app.state, "redis", None))

	@staticmethod
	def build_payload(event_type: str, product: Any, **extra: Any) -> dict[str, Any]:
		payload = {
			"event_type": event_type,
			"product_id": str(product.id),
			"product_code": product.product_code,
			"stage": str(product.current_stage),
			"stage_label": stage_label(product.current_stage),
			"published_at": datetime.now(UTC).isoformat(),
		}
		payload.update({key: str(value) if value is not None else None for key, value in extra.items()})
		return payload

	async def publish(self, event_type: str, product: Any, **extra: Any) -> bool:
		if self.redis_client is None:
			return False
		payload = self.build_payload(event_type, product, **extra)
		try:
			await self.redis_client.publish(self.channel, json.dumps(payload))
		except (RedisError, OSError) as exc:
			logger.warning(
				"live_event_publish_failed",
				event_type=event_type,
				product_id=payload["product_id"],
				error=str(exc),
			)
			return False
		return True
