import pytest
import requests

from api.utils import google_auth
from config import get_settings_for_testing
from exceptions import GoogleTokenError


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("No JSON")
        return self._payload


TOKENINFO = {
    "sub": "1098765",
    "email": "hanako@example.com",
    "email_verified": "true",
    "name": "看護 花子",
    "picture": "https://example.com/p.png",
    "audience": "client-123.apps.googleusercontent.com",
}


@pytest.fixture
def fake_get(monkeypatch):
    calls = []

    def install(response):
        def _get(url, params=None, timeout=None):
            calls.append({"url": url, "params": params, "timeout": timeout})
            if isinstance(response, Exception):
                raise response
            return response
        monkeypatch.setattr(google_auth.requests, "get", _get)
        return calls

    return install


def test_valid_token(settings, fake_get):
    calls = fake_get(FakeResponse(payload=TOKENINFO))

    info = google_auth.verify_google_token("ya29.token", settings)

    assert info.sub == "1098765"
    assert info.email == "hanako@example.com"
    assert info.email_verified is True
    assert info.picture == "https://example.com/p.png"
    assert calls[0]["url"] == settings.google_tokeninfo_url
    assert calls[0]["params"] == {"access_token": "ya29.token"}
    assert calls[0]["timeout"] == settings.google_timeout


def test_name_defaults_to_email_local_part(settings, fake_get):
    fake_get(FakeResponse(payload={"user_id": "1", "email": "hanako@example.com", "verified_email": True}))

    info = google_auth.verify_google_token("ya29.token", settings)

    assert info.sub == "1"
    assert info.name == "hanako"
    assert info.email_verified is True


@pytest.mark.parametrize("response,reason", [
    (FakeResponse(status_code=400, payload={"error": "invalid_token"}), "rejected"),
    (FakeResponse(payload=None), "malformed_response"),
    (FakeResponse(payload={"sub": "1"}), "missing_identity"),
    (requests.ConnectionError("offline"), "unreachable"),
])
def test_rejections(settings, fake_get, response, reason):
    fake_get(response)
    with pytest.raises(GoogleTokenError) as exc:
        google_auth.verify_google_token("ya29.token", settings)
    assert exc.value.details["reason"] == reason


def test_missing_token(settings):
    with pytest.raises(GoogleTokenError) as exc:
        google_auth.verify_google_token("", settings)
    assert exc.value.details["reason"] == "missing"


def test_audience_must_match_configured_client(fake_get):
    fake_get(FakeResponse(payload=TOKENINFO))
    settings = get_settings_for_testing(google_client_id="another-client")

    with pytest.raises(GoogleTokenError) as exc:
        google_auth.verify_google_token("ya29.token", settings)
    assert exc.value.details["reason"] == "audience_mismatch"


def test_audience_match_passes(fake_get):
    fake_get(FakeResponse(payload=TOKENINFO))
    settings = get_settings_for_testing(google_client_id=TOKENINFO["audience"])

    assert google_auth.verify_google_token("ya29.token", settings).email == "hanako@example.com"
