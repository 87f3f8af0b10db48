"""
Dependency Injection Functions
==============================

FastAPI dependency injection for the pipeline, stores and authentication.
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config import Settings, get_settings
from core.record_store import RecordStore
from exceptions import InvalidTokenError, StorageUnavailableError, UserNotFoundError
from models import User
from pipeline import ConversionPipeline
from api.services.user_store import UserStore
from api.utils.security import token_user_id, verify_token

# Security scheme for JWT Bearer tokens
security = HTTPBearer(auto_error=False)


def get_app_settings() -> Settings:
    return get_settings()


def get_pipeline() -> ConversionPipeline:
    """
    Dependency to get the pipeline instance from app state.

    The pipeline is created during application startup (lifespan).

    Returns:
        ConversionPipeline: The configured pipeline instance

    Raises:
        StorageUnavailableError: If the service is still starting up
    """
    from api.main import app_state

    pipeline = app_state.get("pipeline")
    if pipeline is None:
        raise StorageUnavailableError("pipeline", "Service is starting up")
    return pipeline


def get_record_store() -> Optional[RecordStore]:
    """
    Dependency to get the record store, or None when the database is down.

    History and statistics routes answer 503 without a store; conversion
    keeps working.
    """
    from api.main import app_state

    return app_state.get("record_store")


def get_user_store() -> UserStore:
    """
    Dependency to get the user store.

    Creates a singleton UserStore if not already in app state.
    """
    from api.main import app_state
    from api.services.user_store import create_user_store

    if "user_store" not in app_state:
        app_state["user_store"] = create_user_store()
    return app_state["user_store"]


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    user_store: UserStore = Depends(get_user_store),
) -> User:
    """
    Dependency to get current authenticated user from JWT token.

    Use this dependency for routes that REQUIRE authentication.

    Raises:
        InvalidTokenError: 401 if token is missing or invalid
        UserNotFoundError: 404 if the token's user no longer exists
    """
    if credentials is None:
        raise InvalidTokenError("missing")

    payload = verify_token(credentials.credentials)
    user_id = token_user_id(payload)

    user = user_store.find_by_id(user_id)
    if user is None:
        raise UserNotFoundError(user_id)
    return user


async def get_current_user_id_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[int]:
    """
    Optional authentication - returns the user id or None.

    Use this dependency for routes where authentication is optional
    but provides additional features when present. A bad token is
    treated as anonymous.
    """
    if credentials is None:
        return None

    try:
        return token_user_id(verify_token(credentials.credentials))
    except InvalidTokenError:
        return None
