"""Authentication dependencies — get_current_user, require_role, password hashing."""

from __future__ import annotations

import uuid
from typing import Callable

import structlog
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.auth.jwt import AuthError, decode_token
from farmtrace.database import get_db
from farmtrace.models.enums import UserRoleEnum
from farmtrace.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plaintext: str) -> str:
	return pwd_context.hash(plaintext)


def verify_password(plaintext: str, hashed: str) -> bool:
	try:
		return pwd_context.verify(plaintext, hashed)
	except ValueError:
		return False


def auth_http_error(exc: AuthError) -> HTTPException:
	return HTTPException(
		status_code=exc.status_code,
		detail={"error": exc.code, "message": exc.detail},
	)


def extract_client_ip(request: Request) -> str:
	forwarded = request.headers.get("x-forwarded-for", "")
	if forwarded:
		return forwarded.split(",")[0].strip()
	if request.client is not None:
		return request.client.host
	return "unknown"


async def load_active_user(db: AsyncSession, token: str, expected_type: str = "access") -> User:
	"""Resolve a JWT to an active ``User`` or raise ``AuthError``."""
	payload = decode_token(token, expected_type=expected_type)  # type: ignore[arg-type]
	try:
		user_id = uuid.UUID(str(payload["sub"]))
	except (ValueError, KeyError) as exc:
		raise AuthError(code="token_invalid", detail="Token subject is invalid") from exc

	row = await db.execute(select(User).where(User.id == user_id))
	user = row.scalar_one_or_none()
	if user is None or not user.is_active:
		raise AuthError(code="user_invalid", detail="User is not active")
	return user


async def _resolve_user_from_token(
	db: AsyncSession,
	credentials: HTTPAuthorizationCredentials | None,
) -> User:
	if credentials is None or credentials.scheme.lower() != "bearer":
		raise auth_http_error(AuthError(code="auth_required", detail="Bearer token is required"))
	try:
		return await load_active_user(db, credentials.credentials)
	except AuthError as exc:
		raise auth_http_error(exc) from exc


def record_actor(request: Request, user: User) -> None:
	"""Attach the authenticated user to the request log context."""
	actor_id = str(user.id)
	actor_role = UserRoleEnum(user.role).value
	request.state.actor_id = actor_id
	request.state.actor_role = actor_role
	structlog.contextvars.bind_contextvars(actor_id=actor_id, actor_role=actor_role)


async def get_current_user(
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> User:
	credentials = await bearer_scheme(request)
	user = await _resolve_user_from_token(db, credentials)
	record_actor(request, user)
	return user


def require_role(*allowed: UserRoleEnum) -> Callable[[User], User]:
	allowed_set = set(allowed)

	async def dependency(current_user: User = Depends(get_current_user)) -> User:
		if current_user.role not in allowed_set:
			raise HTTPException(
				status_code=status.HTTP_403_FORBIDDEN,
				detail={"error": "forbidden", "message": "Insufficient role"},
			)
		return current_user

	return dependency
