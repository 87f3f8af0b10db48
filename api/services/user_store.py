"""
User Store Service
==================

Key-value storage for user accounts.

Uses Redis when ``redis_url`` is configured and reachable, and an in-memory
dict otherwise (development and tests). Keys:

    user:id:<id>        -> user JSON
    user:email:<email>  -> user JSON
    password:<email>    -> bcrypt hash
    next_user_id        -> integer counter
"""

import logging
from typing import Any, Dict, Optional

import redis

from config import Settings, get_settings
from exceptions import EmailAlreadyRegisteredError, UserNotFoundError
from models import AuthProvider, User, utc_now


logger = logging.getLogger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    """
    Manage user accounts in Redis or in memory.

    Both user keys always hold the same JSON document; every write updates
    the pair together.
    """

    def __init__(self, settings: Optional[Settings] = None, redis_client=None):
        """
        Initialize the user store.

        Args:
            settings: Application settings
            redis_client: Pre-configured client (connects from settings if omitted)
        """
        self.settings = settings or get_settings()
        self._data: Dict[str, Any] = {}  # In-memory storage

        self.redis_client = redis_client
        if self.redis_client is None and self.settings.redis_url:
            try:
                self.redis_client = redis.Redis.from_url(
                    self.settings.redis_url,
                    decode_responses=True,
                    socket_connect_timeout=2
                )
                # Test connection
                self.redis_client.ping()
                logger.info("UserStore connected to Redis")
            except redis.RedisError as e:
                logger.warning(f"Redis not available ({e}); using in-memory user store")
                self.redis_client = None

        if self.redis_client is None:
            logger.info("UserStore using in-memory storage")

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client else "memory"

    # ------------------------------------------------------------------
    # Raw key access
    # ------------------------------------------------------------------

    def _get(self, key: str) -> Optional[str]:
        if self.redis_client:
            return self.redis_client.get(key)
        return self._data.get(key)

    def _set(self, key: str, value: str) -> None:
        if self.redis_client:
            self.redis_client.set(key, value)
        else:
            self._data[key] = value

    def _next_id(self) -> int:
        if self.redis_client:
            return int(self.redis_client.incr("next_user_id"))
        self._data["next_user_id"] = int(self._data.get("next_user_id", 0)) + 1
        return self._data["next_user_id"]

    def _save(self, user: User) -> None:
        payload = user.model_dump_json()
        self._set(f"user:id:{user.id}", payload)
        self._set(f"user:email:{_normalize_email(user.email)}", payload)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """True when the backend answers (always true in memory)."""
        if not self.redis_client:
            return True
        try:
            return bool(self.redis_client.ping())
        except redis.RedisError as e:
            logger.warning(f"UserStore ping failed: {e}")
            return False

    def find_by_email(self, email: str) -> Optional[User]:
        data = self._get(f"user:email:{_normalize_email(email)}")
        return User.model_validate_json(data) if data else None

    def find_by_id(self, user_id: int) -> Optional[User]:
        data = self._get(f"user:id:{user_id}")
        return User.model_validate_json(data) if data else None

    def get_password_hash(self, email: str) -> Optional[str]:
        return self._get(f"password:{_normalize_email(email)}")

    def create_user(
        self,
        email: str,
        display_name: str,
        password_hash: Optional[str] = None,
        auth_provider: AuthProvider = AuthProvider.EMAIL,
        google_id: Optional[str] = None,
        profile_image: Optional[str] = None,
        email_verified: bool = False,
    ) -> User:
        """
        Create a user and return it.

        Raises:
            EmailAlreadyRegisteredError: the email already has an account
        """
        email = _normalize_email(email)
        if self.find_by_email(email):
            raise EmailAlreadyRegisteredError()

        now = utc_now()
        user = User(
            id=self._next_id(),
            email=email,
            display_name=display_name,
            profile_image=profile_image,
            auth_provider=auth_provider,
            google_id=google_id,
            email_verified=email_verified,
            created_at=now,
            last_login_at=now,
        )
        self._save(user)
        if password_hash:
            self._set(f"password:{email}", password_hash)

        logger.info(f"Created user {user.id} ({auth_provider.value})")
        return user

    def update_user(self, user_id: int, updates: Dict[str, Any]) -> User:
        """
        Apply field updates to an existing user.

        Raises:
            UserNotFoundError: no user with this id
        """
        user = self.find_by_id(user_id)
        if not user:
            raise UserNotFoundError(user_id)

        updated = user.model_copy(update=updates)
        self._save(updated)
        return updated

    def touch_last_login(self, user_id: int) -> User:
        return self.update_user(user_id, {"last_login_at": utc_now()})


def create_user_store(settings: Optional[Settings] = None) -> UserStore:
    """Factory function used by the app lifespan."""
    return UserStore(settings=settings or get_settings())
