"""
Authentication Pydantic Models

Request/response models for authentication endpoints.

Author: Quant Desk Development Team
Version: 1.0.0
"""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from quant_desk.models import Role, User


class LoginRequest(BaseModel):
    """Login request model."""

    username: str = Field(..., min_length=1, max_length=50, description="Username")
    password: str = Field(..., min_length=1, description="Password")


class RegisterRequest(BaseModel):
    """Registration request model."""

    username: str = Field(..., min_length=3, max_length=50, description="Username")
    email: EmailStr = Field(..., description="Email address")
    name: str = Field(default="", max_length=255, description="Display name")
    password: str = Field(..., min_length=8, description="Password (min 8 characters)")
    role: Role = Field(default=Role.CLIENT, description="User role")


class UserInfo(BaseModel):
    """User information model."""

    id: int = Field(..., description="User ID")
    username: str = Field(..., description="Username")
    email: EmailStr = Field(..., description="Email address")
    name: str = Field(default="", description="Display name")
    role: Role = Field(..., description="User role (RESEARCHER, PORTFOLIO_MANAGER, CLIENT)")
    is_active: bool = Field(..., description="Account active status")
    last_login: Optional[datetime] = Field(None, description="Last login timestamp")
    created_at: Optional[datetime] = Field(None, description="Account creation timestamp")

    @classmethod
    def from_user(cls, user: User) -> 'UserInfo':
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            name=user.name,
            role=user.role,
            is_active=user.is_active,
            last_login=user.last_login,
            created_at=user.created_at,
        )


class LoginResponse(BaseModel):
    """Login response model."""

    session_token: str = Field(..., description="Session token for authentication")
    expires_at: datetime = Field(..., description="Session expiration timestamp")
    user: UserInfo = Field(..., description="User information")


class LogoutResponse(BaseModel):
    """Logout response model."""

    message: str = Field(default="Logged out successfully")
