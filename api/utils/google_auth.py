"""
Google OAuth Verification
=========================

Verifies a Google OAuth access token against Google's tokeninfo endpoint
and returns the identity fields used to sign in or link an account.
"""

import logging
from typing import Optional

import requests

from config import Settings, get_settings
from exceptions import GoogleTokenError
from models import GoogleTokenInfo


logger = logging.getLogger(__name__)


def verify_google_token(access_token: str, settings: Optional[Settings] = None) -> GoogleTokenInfo:
    """
    Validate an access token with Google.

    Args:
        access_token: OAuth access token from the browser sign-in flow
        settings: Application settings (endpoint, timeout, client id)

    Returns:
        GoogleTokenInfo

    Raises:
        GoogleTokenError: rejected token, missing identity fields, audience
            mismatch, or Google unreachable
    """
    settings = settings or get_settings()

    if not access_token:
        raise GoogleTokenError("missing")

    try:
        response = requests.get(
            settings.google_tokeninfo_url,
            params={"access_token": access_token},
            timeout=settings.google_timeout
        )
    except requests.RequestException as e:
        logger.error(f"Google tokeninfo request failed: {e}")
        raise GoogleTokenError("unreachable")

    if response.status_code != 200:
        logger.warning(f"Google rejected access token (HTTP {response.status_code})")
        raise GoogleTokenError("rejected")

    try:
        info = response.json()
    except ValueError:
        raise GoogleTokenError("malformed_response")

    sub = info.get("sub") or info.get("user_id")
    email = info.get("email")
    if not sub or not email:
        raise GoogleTokenError("missing_identity")

    audience = info.get("audience") or info.get("issued_to")
    if settings.google_client_id and audience and audience != settings.google_client_id:
        logger.warning("Google token was issued for a different client")
        raise GoogleTokenError("audience_mismatch")

    verified = info.get("email_verified", info.get("verified_email"))

    return GoogleTokenInfo(
        sub=str(sub),
        email=email,
        name=info.get("name") or email.split("@")[0],
        picture=info.get("picture"),
        email_verified=verified is True or verified == "true",
    )
