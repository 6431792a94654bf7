"""JWT issuing and validation for pipeline actors."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from jose import JWTError, jwt

from farmtrace.config import get_settings

TokenType = Literal["access", "refresh"]


@dataclass(slots=True)
class AuthError(Exception):
	"""Structured authentication error for consistent mapping at the edge."""

	code: str
	detail: str
	status_code: int = 401


def _encode(subject: str, token_type: TokenType, ttl_minutes: int, role: str | None) -> str:
	settings = get_settings()
	now = datetime.now(UTC)
	claims: dict[str, Any] = {
		"sub": subject,
		"typ": token_type,
		"iat": int(now.timestamp()),
		"exp": int((now + timedelta(minutes=ttl_minutes)).timestamp()),
	}
	if role is not None:
		claims["role"] = role
	return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(subject: str, role: str | None = None, expires_minutes: int | None = None) -> str:
	ttl = expires_minutes or get_settings().jwt_access_token_expire_minutes
	return _encode(subject, "access", ttl, role)


def create_refresh_token(subject: str, expires_minutes: int | None = None) -> str:
	ttl = expires_minutes or get_settings().jwt_refresh_token_expire_minutes
	return _encode(subject, "refresh", ttl, None)


def decode_token(token: str, expected_type: TokenType | None = None) -> dict[str, Any]:
	settings = get_settings()
	try:
		payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
	except JWTError as exc:
		raise AuthError(code="token_invalid", detail="Invalid authentication token") from exc

	subject = payload.get("sub")
	if not isinstance(subject, str) or not subject:
		raise AuthError(code="token_invalid", detail="Token subject is missing")

	token_type = payload.get("typ")
	if expected_type is not None and token_type != expected_type:
		raise AuthError(code="token_type_invalid", detail=f"Expected {expected_type} token")

	exp_raw = payload.get("exp")
	if not isinstance(exp_raw, int):
		raise AuthError(code="token_invalid", detail="Token expiration is missing")
	if datetime.now(UTC).timestamp() >= exp_raw:
		raise AuthError(code="token_expired", detail="Authentication token has expired")

	return payload
