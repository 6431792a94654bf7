"""Registration, login and refresh-token exchange."""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.auth.dependencies import hash_password, load_active_user, verify_password
from farmtrace.auth.jwt import AuthError, create_access_token, create_refresh_token
from farmtrace.errors import Conflict, ValidationError
from farmtrace.models.enums import UserRoleEnum
from farmtrace.models.product import FarmerProfile
from farmtrace.models.user import User
from farmtrace.schemas.auth import LoginRequest, RegisterRequest, TokenPair

logger = structlog.get_logger("farmtrace.auth")


def issue_tokens(user: User) -> TokenPair:
	return TokenPair(
		access_token=create_access_token(str(user.id), role=str(user.role)),
		refresh_token=create_refresh_token(str(user.id)),
	)


class AuthService:
	def __init__(self, db: AsyncSession):
		self.db = db

	async def register(self, payload: RegisterRequest) -> User:
		if payload.role == UserRoleEnum.admin:
			raise ValidationError(
				"Admin accounts cannot be self-registered",
				errors=[{"field": "role", "message": "admin is not allowed"}],
			)
		email = payload.email.strip().lower()
		rows = await self.db.execute(select(User).where(User.email == email))
		if rows.scalar_one_or_none() is not None:
			raise Conflict(f"User with email {email} already exists")

		user = User(
			name=payload.name,
			email=email,
			hashed_password=hash_password(payload.password),
			role=payload.role,
			is_active=True,
		)
		self.db.add(user)
		await self.db.flush()
		if payload.role == UserRoleEnum.farmer:
			self.db.add(FarmerProfile(user_id=user.id, name=payload.name))
		try:
			await self.db.commit()
		except IntegrityError as exc:
			await self.db.rollback()
			raise Conflict(f"User with email {email} already exists") from exc
		await self.db.refresh(user)
		logger.info("user_registered", user_id=str(user.id), role=str(user.role))
		return user

	async def authenticate(self, payload: LoginRequest) -> User:
		rows = await self.db.execute(select(User).where(User.email == payload.email.strip().lower()))
		user = rows.scalar_one_or_none()
		if user is None or not verify_password(payload.password, user.hashed_password):
			raise AuthError(code="credentials_invalid", detail="Invalid email or password")
		if not user.is_active:
			raise AuthError(code="user_invalid", detail="User is not active")
		return user

	async def refresh(self, refresh_token: str) -> TokenPair:
		user = await load_active_user(self.db, refresh_token, expected_type="refresh")
		return issue_tokens(user)
