import os
import tempfile

# Settings are cached on first import, so the test environment must be in
# place before any project module is loaded.
_TEST_DIR = tempfile.mkdtemp(prefix="tapkarte-tests-")
os.environ["TAPKARTE_DATABASE_URL"] = f"sqlite:///{_TEST_DIR}/app.db"
os.environ["TAPKARTE_GEMINI_API_KEY"] = ""
os.environ["TAPKARTE_ANTHROPIC_API_KEY"] = ""
os.environ["TAPKARTE_LLM_PROVIDER"] = "gemini"
os.environ.pop("TAPKARTE_REDIS_URL", None)
os.environ["TAPKARTE_BCRYPT_ROUNDS"] = "4"
os.environ["TAPKARTE_JWT_SECRET_KEY"] = "test-secret-key"
os.environ["TAPKARTE_RATE_LIMIT_CONVERT"] = "1000/minute"
os.environ.pop("TAPKARTE_GOOGLE_CLIENT_ID", None)

import pytest
from fastapi.testclient import TestClient

from config import get_settings, get_settings_for_testing
from core.record_store import RecordStore


CONVERTED_TEXT = "10時、体温37.8℃。頭痛の訴えあり。水分摂取を促した。"


class FakeConverter:
    """Note converter double that records prompts and returns a fixed answer."""

    def __init__(self, response: str = CONVERTED_TEXT, provider: str = "gemini", error=None):
        self.response = response
        self.provider = provider
        self.error = error
        self.prompts: list[str] = []

    def convert(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response

    async def aconvert(self, prompt: str) -> str:
        return self.convert(prompt)


@pytest.fixture
def settings(tmp_path):
    return get_settings_for_testing(
        database_url=f"sqlite:///{tmp_path}/records.db",
        bcrypt_rounds=4,
        jwt_secret_key="test-secret-key",
    )


@pytest.fixture
def record_store(settings):
    store = RecordStore(settings=settings)
    yield store
    store.engine.dispose()


@pytest.fixture
def fake_converter():
    return FakeConverter()


@pytest.fixture
def client(fake_converter):
    """TestClient with the LLM replaced by FakeConverter and a fresh user store."""
    from api.main import app, app_state
    from api.services.user_store import UserStore
    from pipeline import ConversionPipeline

    with TestClient(app) as test_client:
        app_state["pipeline"] = ConversionPipeline(
            settings=get_settings(),
            converter=fake_converter,
            record_store=app_state["record_store"],
        )
        app_state["user_store"] = UserStore(settings=get_settings())
        yield test_client


@pytest.fixture
def registered_user(client):
    """Register a user and return (email, password, token)."""
    email = "nurse@example.com"
    password = "kango2024"
    response = client.post("/api/auth/register", json={
        "email": email,
        "password": password,
        "display_name": "看護 花子",
    })
    assert response.status_code == 200
    return email, password, response.json()["token"]
