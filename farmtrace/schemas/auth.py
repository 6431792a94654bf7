"""Pydantic schemas for registration, login and token exchange."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from farmtrace.models.enums import UserRoleEnum


class RegisterRequest(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
	password: str = Field(min_length=6, max_length=128)
	role: UserRoleEnum = UserRoleEnum.customer


class LoginRequest(BaseModel):
	email: str = Field(min_length=3, max_length=255)
	password: str = Field(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
	refresh_token: str = Field(min_length=1)


class TokenPair(BaseModel):
	access_token: str
	refresh_token: str
	token_type: str = "bearer"


class UserRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	name: str
	email: str
	role: UserRoleEnum
	is_active: bool
	created_at: datetime


class UserListRead(BaseModel):
	items: list[UserRead]


class AuthResponse(BaseModel):
	user: UserRead
	tokens: TokenPair
