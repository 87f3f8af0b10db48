import pytest
import redis

from api.services.user_store import UserStore
from exceptions import EmailAlreadyRegisteredError, UserNotFoundError
from models import AuthProvider


@pytest.fixture
def user_store(settings):
    return UserStore(settings=settings)


def test_memory_backend_without_redis_url(user_store):
    assert user_store.backend == "memory"
    assert user_store.ping() is True


def test_unreachable_redis_falls_back_to_memory(settings):
    settings.redis_url = "redis://127.0.0.1:1/0"
    store = UserStore(settings=settings)
    assert store.backend == "memory"


def test_create_and_find_user(user_store):
    user = user_store.create_user("Nurse@Example.com", "看護 花子", password_hash="hash")

    assert user.id == 1
    assert user.email == "nurse@example.com"
    assert user.auth_provider == AuthProvider.EMAIL
    assert user_store.find_by_email("NURSE@example.com") == user
    assert user_store.find_by_id(1) == user
    assert user_store.get_password_hash("nurse@example.com") == "hash"


def test_ids_increment(user_store):
    first = user_store.create_user("a@example.com", "A")
    second = user_store.create_user("b@example.com", "B")
    assert (first.id, second.id) == (1, 2)


def test_duplicate_email_rejected(user_store):
    user_store.create_user("a@example.com", "A")
    with pytest.raises(EmailAlreadyRegisteredError):
        user_store.create_user(" A@example.com ", "A again")


def test_google_user_has_no_password(user_store):
    user = user_store.create_user(
        "g@example.com", "G", auth_provider=AuthProvider.GOOGLE, google_id="123", email_verified=True,
    )
    assert user.google_id == "123"
    assert user_store.get_password_hash("g@example.com") is None


def test_update_user_keeps_both_keys_in_sync(user_store):
    user = user_store.create_user("a@example.com", "A")
    user_store.update_user(user.id, {"display_name": "B"})

    assert user_store.find_by_id(user.id).display_name == "B"
    assert user_store.find_by_email("a@example.com").display_name == "B"


def test_update_missing_user_raises(user_store):
    with pytest.raises(UserNotFoundError):
        user_store.update_user(99, {"display_name": "x"})


def test_touch_last_login(user_store):
    user = user_store.create_user("a@example.com", "A")
    touched = user_store.touch_last_login(user.id)
    assert touched.last_login_at >= user.last_login_at


class FakeRedis:
    """Minimal stand-in for the redis client calls the store makes."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value):
        self.data[key] = value

    def incr(self, key):
        self.data[key] = int(self.data.get(key, 0)) + 1
        return self.data[key]

    def ping(self):
        raise redis.ConnectionError("down")


def test_redis_backend_is_used_when_given(settings):
    client = FakeRedis()
    store = UserStore(settings=settings, redis_client=client)

    store.create_user("r@example.com", "R", password_hash="h")

    assert store.backend == "redis"
    assert "user:email:r@example.com" in client.data
    assert client.data["password:r@example.com"] == "h"
    assert store.ping() is False
