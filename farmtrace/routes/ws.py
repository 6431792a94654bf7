"""WebSocket live feed of committed stage changes."""

from __future__ import annotations

import asyncio
import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from farmtrace.auth.dependencies import load_active_user
from farmtrace.auth.jwt import AuthError
from farmtrace.config import get_settings
from farmtrace.database import async_session_factory

router = APIRouter(tags=["websocket"])


async def _authenticate_token(token: str) -> bool:
	async with async_session_factory() as session:
		try:
			await load_active_user(session, token)
		except AuthError:
			return False
	return True


def _matches(payload: object, product_code: str | None) -> bool:
	if product_code is None:
		return True
	return isinstance(payload, dict) and payload.get("product_code") == product_code


@router.websocket("/ws/live")
async def ws_live_feed(websocket: WebSocket) -> None:
	await websocket.accept()

	token = websocket.query_params.get("token")
	if token is None or not token.strip():
		await websocket.send_json({"error": "auth_required"})
		await websocket.close(code=1008)
		return
	if not await _authenticate_token(token.strip()):
		await websocket.send_json({"error": "auth_invalid"})
		await websocket.close(code=1008)
		return

	redis_client = getattr(websocket.app.state, "redis", None)
	if redis_client is None:
		await websocket.send_json({"error": "redis_unavailable"})
		await websocket.close(code=1011)
		return

	product_code = websocket.query_params.get("product_code") or None
	channel = get_settings().live_channel
	pubsub = redis_client.pubsub()
	await pubsub.subscribe(channel)

	try:
		while True:
			message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
			if message is not None and message.get("type") == "message":
				data = message.get("data")
				if isinstance(data, bytes):
					data = data.decode("utf-8")
				if isinstance(data, str):
					try:
						payload = json.loads(data)
					except json.JSONDecodeError:
						await websocket.send_text(data)
					else:
						if _matches(payload, product_code):
							await websocket.send_json(payload)
			await asyncio.sleep(0.05)
	except WebSocketDisconnect:
		return
	finally:
		await pubsub.unsubscribe(channel)
		await pubsub.close()
