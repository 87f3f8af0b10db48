"""
Security Utilities
==================

JWT token generation/validation and password hashing.

Tokens carry the user id as ``sub`` (a string, as JWT requires), the email,
and ``iat``/``exp`` timestamps. Passwords are hashed with bcrypt.
"""

import logging
from datetime import timedelta
from typing import Optional, Dict, Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from config import Settings, get_settings
from exceptions import InvalidTokenError
from models import User, utc_now


logger = logging.getLogger(__name__)

_pwd_contexts: Dict[int, CryptContext] = {}


def _pwd_context(settings: Optional[Settings] = None) -> CryptContext:
    rounds = (settings or get_settings()).bcrypt_rounds
    if rounds not in _pwd_contexts:
        _pwd_contexts[rounds] = CryptContext(
            schemes=["bcrypt"],
            deprecated="auto",
            bcrypt__rounds=rounds
        )
    return _pwd_contexts[rounds]


def hash_password(password: str, settings: Optional[Settings] = None) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password
        settings: Application settings (cost factor)

    Returns:
        str: Hashed password
    """
    return _pwd_context(settings).hash(password)


def verify_password(
    plain_password: str,
    hashed_password: Optional[str],
    settings: Optional[Settings] = None
) -> bool:
    """
    Verify a password against a hash.

    A missing or malformed hash never matches.
    """
    if not hashed_password:
        return False
    try:
        return _pwd_context(settings).verify(plain_password, hashed_password)
    except ValueError:
        logger.warning("Stored password hash could not be parsed")
        return False


def create_access_token(
    user: User,
    expires_delta: Optional[timedelta] = None,
    settings: Optional[Settings] = None
) -> str:
    """
    Create a JWT access token for a user.

    Args:
        user: The authenticated user
        expires_delta: Optional custom expiration time
        settings: Application settings (secret, algorithm, lifetime)

    Returns:
        str: The encoded JWT token
    """
    settings = settings or get_settings()

    now = utc_now()
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.jwt_access_token_expire_minutes)

    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "iat": now,
        "exp": expire,
    }

    return jwt.encode(
        to_encode,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm
    )


def verify_token(token: str, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Args:
        token: The JWT token string

    Returns:
        dict: The decoded token payload, with ``sub`` as a string

    Raises:
        InvalidTokenError: expired, badly signed, malformed, or no ``sub``
    """
    settings = settings or get_settings()

    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm]
        )
    except ExpiredSignatureError:
        raise InvalidTokenError("expired")
    except JWTError:
        raise InvalidTokenError("invalid")

    if not payload.get("sub"):
        raise InvalidTokenError("missing_subject")

    return payload


def token_user_id(payload: Dict[str, Any]) -> int:
    """Integer user id from a verified payload."""
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidTokenError("invalid_subject")


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an ``Authorization: Bearer <token>`` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()
