"""
Authentication Endpoints
========================

Email/password registration and login, Google sign-in, and token
management. Tokens are stateless JWTs, so logout only acknowledges.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from config import Settings
from exceptions import GoogleTokenError, InvalidCredentialsError, MissingFieldError
from core.validation import check_password_strength, require_valid_email
from models import AuthProvider, ClientInfo, SecuritySeverity, User
from api.dependencies import get_app_settings, get_current_user, get_user_store
from api.middleware.request_context import client_ip
from api.models.responses import MessageResponse
from api.models.user import (
    AuthResponse,
    GoogleLoginRequest,
    LoginRequest,
    MeResponse,
    RegisterRequest,
)
from api.services.user_store import UserStore
from api.utils.google_auth import verify_google_token
from api.utils.security import create_access_token, hash_password, verify_password


logger = logging.getLogger(__name__)

router = APIRouter()


def _auth_response(user: User) -> AuthResponse:
    return AuthResponse(user=user.public_dict(), token=create_access_token(user))


def _log_auth_failure(request: Request, event_type: str, description: str) -> None:
    from api.main import app_state

    pipeline = app_state.get("pipeline")
    if pipeline is not None:
        pipeline.log_security_event(
            event_type,
            description,
            SecuritySeverity.WARNING,
            ClientInfo(
                ip_address=client_ip(request),
                user_agent=request.headers.get("user-agent"),
            ),
        )


@router.post("/register", response_model=AuthResponse)
async def register(
    body: RegisterRequest,
    user_store: UserStore = Depends(get_user_store)
) -> AuthResponse:
    """
    Register with email, password and display name.

    Raises:
        MissingFieldError, InvalidEmailError, WeakPasswordError,
        EmailAlreadyRegisteredError
    """
    if not body.email or not body.password or not body.display_name:
        raise MissingFieldError(
            ["email", "password", "display_name"],
            message="メールアドレス、パスワード、表示名は必須です"
        )

    email = require_valid_email(body.email)
    check_password_strength(body.password)

    # bcrypt blocks, keep it off the event loop
    password_hash = await run_in_threadpool(hash_password, body.password)
    user = user_store.create_user(
        email=email,
        display_name=body.display_name,
        password_hash=password_hash,
        auth_provider=AuthProvider.EMAIL,
    )
    logger.info(f"User {user.id} registered")
    return _auth_response(user)


@router.post("/login", response_model=AuthResponse)
async def login(
    request: Request,
    body: LoginRequest,
    user_store: UserStore = Depends(get_user_store)
) -> AuthResponse:
    """
    Email/password login.

    Unknown email, Google-only account and wrong password all produce the
    same 401 message.
    """
    if not body.email or not body.password:
        raise MissingFieldError(
            ["email", "password"],
            message="メールアドレスとパスワードは必須です"
        )

    email = require_valid_email(body.email)
    user = user_store.find_by_email(email)

    valid = (
        user is not None
        and user.auth_provider == AuthProvider.EMAIL
        and await run_in_threadpool(verify_password, body.password, user_store.get_password_hash(email))
    )
    if not valid:
        _log_auth_failure(request, "login_failed", "Invalid email/password login attempt")
        raise InvalidCredentialsError()

    user = user_store.touch_last_login(user.id)
    logger.info(f"User {user.id} logged in")
    return _auth_response(user)


@router.post("/google", response_model=AuthResponse)
async def google_login(
    request: Request,
    body: GoogleLoginRequest,
    user_store: UserStore = Depends(get_user_store),
    settings: Settings = Depends(get_app_settings)
) -> AuthResponse:
    """
    Sign in with a Google OAuth access token.

    Creates the user on first sign-in; an existing email account is linked
    to the Google identity.
    """
    if not body.token:
        raise MissingFieldError(["token"], message="Googleトークンが必要です")

    try:
        info = await run_in_threadpool(verify_google_token, body.token, settings)
    except GoogleTokenError:
        _log_auth_failure(request, "google_token_rejected", "Google token verification failed")
        raise

    user = user_store.find_by_email(info.email)
    if user is None:
        user = user_store.create_user(
            email=info.email,
            display_name=info.name,
            auth_provider=AuthProvider.GOOGLE,
            google_id=info.sub,
            profile_image=info.picture,
            email_verified=info.email_verified,
        )
    else:
        if user.auth_provider != AuthProvider.GOOGLE:
            logger.info(f"Linking user {user.id} to Google account")
            user = user_store.update_user(user.id, {
                "auth_provider": AuthProvider.GOOGLE,
                "google_id": info.sub,
                "email_verified": info.email_verified,
            })
        user = user_store.touch_last_login(user.id)

    return _auth_response(user)


@router.get("/me", response_model=MeResponse)
async def me(user: User = Depends(get_current_user)) -> MeResponse:
    """Current user's profile."""
    return MeResponse(user=user.public_dict(detailed=True))


@router.post("/logout", response_model=MessageResponse)
async def logout() -> MessageResponse:
    """Acknowledge logout; the client discards its token."""
    return MessageResponse(message="ログアウトしました")


@router.post("/refresh", response_model=AuthResponse)
async def refresh(user: User = Depends(get_current_user)) -> AuthResponse:
    """Issue a fresh token for a still-valid one."""
    logger.info(f"Token refreshed for user {user.id}")
    return _auth_response(user)


@router.get("/google-config")
async def google_config(settings: Settings = Depends(get_app_settings)) -> dict:
    """Public Google OAuth client id for the browser sign-in button."""
    return {
        "success": True,
        "clientId": settings.google_client_id,
        "enabled": bool(settings.google_client_id),
    }
