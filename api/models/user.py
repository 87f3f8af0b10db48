"""
User Models
===========

Pydantic models for user authentication requests and responses.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import Optional


class RegisterRequest(BaseModel):
    """User registration with email and password."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "nurse@example.com",
                "password": "kango2024",
                "display_name": "看護 花子"
            }
        }
    )

    email: Optional[str] = None
    password: Optional[str] = None
    display_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("display_name", "displayName")
    )


class LoginRequest(BaseModel):
    """Email/password login credentials."""

    email: Optional[str] = None
    password: Optional[str] = None


class GoogleLoginRequest(BaseModel):
    """Google sign-in with an OAuth access token from the browser."""

    token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("token", "accessToken", "access_token")
    )


class UserPublic(BaseModel):
    """User fields returned to the browser."""

    id: int
    email: str
    display_name: str
    profile_image: Optional[str] = None
    email_verified: Optional[bool] = None
    created_at: Optional[str] = None


class AuthResponse(BaseModel):
    """Response for register, login, Google login and refresh."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "user": {
                    "id": 1,
                    "email": "nurse@example.com",
                    "display_name": "看護 花子",
                    "profile_image": None
                },
                "token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9..."
            }
        }
    )

    success: bool = True
    user: UserPublic
    token: str


class MeResponse(BaseModel):
    """Response for GET /api/auth/me."""

    success: bool = True
    user: UserPublic
