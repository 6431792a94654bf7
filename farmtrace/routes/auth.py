"""Registration, login and token refresh routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from farmtrace.auth.dependencies import auth_http_error, get_current_user
from farmtrace.auth.jwt import AuthError
from farmtrace.database import get_db
from farmtrace.errors import map_error
from farmtrace.models.user import User
from farmtrace.schemas.auth import AuthResponse, LoginRequest, RefreshRequest, RegisterRequest, TokenPair, UserRead
from farmtrace.services.auth_service import AuthService, issue_tokens

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
	service = AuthService(db)
	try:
		user = await service.register(payload)
	except Exception as exc:
		raise map_error(exc) from exc
	return AuthResponse(user=UserRead.model_validate(user), tokens=issue_tokens(user))


@router.post("/login", response_model=AuthResponse)
async def login(payload: LoginRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
	service = AuthService(db)
	try:
		user = await service.authenticate(payload)
	except AuthError as exc:
		raise auth_http_error(exc) from exc
	except Exception as exc:
		raise map_error(exc) from exc
	return AuthResponse(user=UserRead.model_validate(user), tokens=issue_tokens(user))


@router.post("/refresh", response_model=TokenPair)
async def refresh(payload: RefreshRequest, db: AsyncSession = Depends(get_db)) -> TokenPair:
	service = AuthService(db)
	try:
		return await service.refresh(payload.refresh_token)
	except AuthError as exc:
		raise auth_http_error(exc) from exc
	except Exception as exc:
		raise map_error(exc) from exc


@router.get("/me", response_model=UserRead)
async def me(current_user: User = Depends(get_current_user)) -> UserRead:
	return UserRead.model_validate(current_user)
