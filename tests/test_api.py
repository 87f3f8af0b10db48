import uuid

import pytest

from conftest import CONVERTED_TEXT
from exceptions import LLMAuthenticationError, LLMRateLimitError, LLMServiceError, LLMTimeoutError


MEMO = "10時 体温37.8度 頭痛の訴えあり 水分摂取促す"


def _session() -> str:
    return f"session_test_{uuid.uuid4().hex[:12]}"


def _convert(client, headers=None, **overrides):
    body = {"text": MEMO, "style": "だ・である体", "docType": "記録", "format": "文章形式", "charLimit": 300}
    body.update(overrides)
    return client.post("/api/convert", json=body, headers=headers or {})


# =============================================================================
# POST /api/convert
# =============================================================================

class TestConvert:
    def test_success_response_shape(self, client, fake_converter):
        response = _convert(client)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["convertedText"] == CONVERTED_TEXT
        assert body["options"] == {"style": "だ・である体", "docType": "記録", "format": "文章形式"}
        assert body["sessionId"].startswith("session_")
        assert body["demo"] is False
        assert body["performance"]["timestamp"].endswith("Z")
        assert "300文字以内" in fake_converter.prompts[0]

    def test_session_header_is_reused(self, client):
        session_id = _session()
        response = _convert(client, headers={"X-Session-Id": session_id})
        assert response.json()["sessionId"] == session_id

    def test_nested_options_take_priority(self, client, fake_converter):
        response = _convert(client, options={"docType": "報告書", "format": "SOAP形式", "charLimit": 800})

        assert response.status_code == 200
        assert response.json()["options"]["docType"] == "報告書"
        assert "### 報告書作成要件" in fake_converter.prompts[0]
        assert "800文字以内" in fake_converter.prompts[0]

    def test_char_limit_clamped(self, client, fake_converter):
        _convert(client, charLimit=5000)
        assert "1000文字以内" in fake_converter.prompts[0]

    def test_output_limited_to_char_limit(self, client, fake_converter):
        fake_converter.response = "あ" * 400
        body = _convert(client, charLimit=150).json()
        assert body["convertedText"] == "あ" * 149 + "。"

    def test_empty_text_rejected(self, client, fake_converter):
        response = _convert(client, text="   ")

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "入力テキストが空です"
        assert body["errorType"] == "validation_error"
        assert "responseTime" in body["performance"]
        assert fake_converter.prompts == []

    def test_too_long_text_rejected(self, client):
        response = _convert(client, text="あ" * 50001)
        assert response.status_code == 400
        assert response.json()["error"] == "入力テキストが長すぎます（50,000文字以内）"

    def test_invalid_option_rejected(self, client):
        response = _convert(client, style="丁寧語")
        assert response.status_code == 400
        assert response.json()["details"]["field"] == "style"

    def test_personal_info_rejected(self, client, fake_converter):
        response = _convert(client, text="長女 090-1234-5678 へ連絡")

        assert response.status_code == 400
        body = response.json()
        assert body["errorType"] == "security_warning"
        assert body["error_type"] == "PersonalInfoDetectedError"
        assert fake_converter.prompts == []

    @pytest.mark.parametrize("error,status,error_type", [
        (LLMRateLimitError("gemini"), 429, "rate_limit_error"),
        (LLMTimeoutError("gemini", 30), 504, "timeout_error"),
        (LLMAuthenticationError("gemini"), 500, "api_auth_error"),
        (LLMServiceError("gemini", "RuntimeError"), 502, "api_error"),
    ])
    def test_llm_errors_mapped(self, client, fake_converter, error, status, error_type):
        fake_converter.error = error

        response = _convert(client)

        assert response.status_code == status
        assert response.json()["errorType"] == error_type

    def test_non_object_body_uses_error_envelope(self, client):
        response = client.post("/api/convert", json=["not", "an", "object"])
        assert response.status_code == 400
        assert response.json()["success"] is False

    def test_response_headers(self, client):
        response = _convert(client)

        assert response.headers["X-Request-ID"].startswith("req_")
        assert response.headers["X-Response-Time"].endswith("ms")
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    @pytest.mark.parametrize("char_limit,expected", [
        ("750.5", "750文字以内"),
        (250.9, "250文字以内"),
    ])
    def test_non_integer_char_limit(self, client, fake_converter, char_limit, expected):
        response = _convert(client, charLimit=char_limit)

        assert response.status_code == 200
        assert expected in fake_converter.prompts[0]

    def test_infinite_char_limit_uses_default(self, client, fake_converter):
        # Python's json accepts the Infinity literal; the client refuses to send it
        body = '{"text": "' + MEMO + '", "style": "だ・である体", "docType": "記録", "format": "文章形式", "charLimit": Infinity}'
        response = client.post(
            "/api/convert",
            content=body.encode("utf-8"),
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 200
        assert "500文字以内" in fake_converter.prompts[0]

    def test_rate_limit_exceeded(self, client, monkeypatch):
        from api.middleware.rate_limiter import limiter
        from config import get_settings

        monkeypatch.setattr(get_settings(), "rate_limit_convert", "2/minute")
        limiter.reset()
        try:
            responses = [_convert(client) for _ in range(3)]
        finally:
            limiter.reset()

        assert [r.status_code for r in responses] == [200, 200, 429]
        body = responses[-1].json()
        assert body["success"] is False
        assert body["errorType"] == "rate_limit_error"
        assert body["error_type"] == "RateLimitExceeded"
        assert body["error"] == "リクエストが多すぎます。しばらく待ってから再試行してください"


# =============================================================================
# Authentication
# =============================================================================

class TestAuth:
    def test_register_returns_user_and_token(self, client):
        response = client.post("/api/auth/register", json={
            "email": "new@example.com", "password": "kango2024", "displayName": "新人",
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["user"]["email"] == "new@example.com"
        assert body["user"]["display_name"] == "新人"
        assert body["token"]

    @pytest.mark.parametrize("payload,message", [
        ({"email": "a@example.com", "password": "kango2024"}, "メールアドレス、パスワード、表示名は必須です"),
        ({"email": "bad-email", "password": "kango2024", "display_name": "A"}, "有効なメールアドレスを入力してください"),
        ({"email": "a@example.com", "password": "short1", "display_name": "A"}, "パスワードは8文字以上である必要があります"),
    ])
    def test_register_validation(self, client, payload, message):
        response = client.post("/api/auth/register", json=payload)
        assert response.status_code == 400
        assert response.json()["error"] == message

    def test_register_duplicate_email(self, client, registered_user):
        response = client.post("/api/auth/register", json={
            "email": "NURSE@example.com", "password": "kango2024", "display_name": "重複",
        })
        assert response.status_code == 400
        assert response.json()["error"] == "このメールアドレスは既に使用されています"

    def test_login(self, client, registered_user):
        email, password, _ = registered_user
        response = client.post("/api/auth/login", json={"email": email, "password": password})

        assert response.status_code == 200
        assert response.json()["user"]["email"] == email

    def test_login_runs_off_the_event_loop(self, client, registered_user, monkeypatch):
        import asyncio
        import time

        import httpx

        from api.main import app
        from api.routes import auth

        email, password, _ = registered_user
        verify = auth.verify_password

        def slow_verify(plain, hashed):
            time.sleep(0.5)
            return verify(plain, hashed)

        monkeypatch.setattr(auth, "verify_password", slow_verify)
        finished = []

        async def run():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
                async def login():
                    response = await http.post("/api/auth/login", json={"email": email, "password": password})
                    finished.append("login")
                    return response

                async def live():
                    await asyncio.sleep(0.05)
                    response = await http.get("/api/health/live")
                    finished.append("live")
                    return response

                return await asyncio.gather(login(), live())

        login_response, live_response = asyncio.run(run())

        assert login_response.status_code == 200
        assert live_response.status_code == 200
        assert finished == ["live", "login"]

    @pytest.mark.parametrize("email,password", [
        ("nurse@example.com", "wrong-pass1"),
        ("nobody@example.com", "kango2024"),
    ])
    def test_login_failures_share_message(self, client, registered_user, email, password):
        response = client.post("/api/auth/login", json={"email": email, "password": password})

        assert response.status_code == 401
        assert response.json()["error"] == "メールアドレスまたはパスワードが間違っています"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_login_missing_fields(self, client):
        response = client.post("/api/auth/login", json={"email": "nurse@example.com"})
        assert response.status_code == 400
        assert response.json()["error"] == "メールアドレスとパスワードは必須です"

    def test_me(self, client, registered_user):
        _, _, token = registered_user
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        user = response.json()["user"]
        assert user["display_name"] == "看護 花子"
        assert user["email_verified"] is False
        assert user["created_at"]

    def test_me_requires_token(self, client):
        response = client.get("/api/auth/me")
        assert response.status_code == 401
        assert response.json()["error"] == "認証が必要です"

    def test_me_rejects_bad_token(self, client):
        response = client.get("/api/auth/me", headers={"Authorization": "Bearer nonsense"})
        assert response.status_code == 401

    def test_refresh_and_logout(self, client, registered_user):
        _, _, token = registered_user
        headers = {"Authorization": f"Bearer {token}"}

        refreshed = client.post("/api/auth/refresh", headers=headers)
        assert refreshed.status_code == 200
        assert refreshed.json()["token"]

        logout = client.post("/api/auth/logout", headers=headers)
        assert logout.json() == {"success": True, "message": "ログアウトしました"}

    def test_google_config(self, client):
        assert client.get("/api/auth/google-config").json() == {
            "success": True, "clientId": None, "enabled": False,
        }


class TestGoogleLogin:
    @pytest.fixture
    def tokeninfo(self, monkeypatch):
        from api.utils import google_auth

        info = {"sub": "g-1", "email": "nurse@example.com", "email_verified": "true", "name": "Google 花子"}

        class _Response:
            status_code = 200

            def json(self):
                return info

        monkeypatch.setattr(google_auth.requests, "get", lambda *args, **kwargs: _Response())
        return info

    def test_creates_google_user(self, client, tokeninfo):
        response = client.post("/api/auth/google", json={"token": "ya29.token"})

        assert response.status_code == 200
        assert response.json()["user"]["display_name"] == "Google 花子"

    def test_links_existing_email_account(self, client, registered_user, tokeninfo):
        from api.main import app_state

        response = client.post("/api/auth/google", json={"accessToken": "ya29.token"})

        assert response.status_code == 200
        user = app_state["user_store"].find_by_email("nurse@example.com")
        assert user.auth_provider.value == "google"
        assert user.google_id == "g-1"
        assert user.email_verified is True
        assert user.display_name == "看護 花子"

    def test_missing_token(self, client):
        response = client.post("/api/auth/google", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "Googleトークンが必要です"

    def test_rejected_token(self, client, monkeypatch):
        from api.utils import google_auth

        class _Rejected:
            status_code = 400

        monkeypatch.setattr(google_auth.requests, "get", lambda *args, **kwargs: _Rejected())
        response = client.post("/api/auth/google", json={"token": "expired"})

        assert response.status_code == 401
        assert response.json()["error"] == "無効なGoogleトークンです"


# =============================================================================
# History
# =============================================================================

class TestHistory:
    def test_anonymous_without_session(self, client):
        body = client.get("/api/history").json()

        assert body["success"] is True
        assert body["records"] == []
        assert body["message"] == "ログインすると履歴が永続的に保存されます"

    def test_session_history(self, client):
        session_id = _session()
        _convert(client, headers={"X-Session-Id": session_id})
        _convert(client, headers={"X-Session-Id": session_id}, text="14時 血圧130/80")

        by_header = client.get("/api/history", headers={"X-Session-Id": session_id}).json()
        by_path = client.get(f"/api/history/{session_id}").json()

        assert by_header["count"] == 2
        assert by_header["authenticated"] is False
        assert by_header["sessionId"] == session_id
        assert by_header["records"][0]["input_text"] == "14時 血圧130/80"
        assert by_path["records"] == by_header["records"]

    def test_signed_in_history_follows_user(self, client, registered_user):
        _, _, token = registered_user
        auth = {"Authorization": f"Bearer {token}"}
        session_id = _session()

        _convert(client, headers={**auth, "X-Session-Id": session_id})

        body = client.get("/api/history", headers=auth).json()
        assert body["authenticated"] is True
        assert body["userId"] is not None
        assert body["count"] >= 1
        # Records owned by a user are not visible through the anonymous session
        assert client.get(f"/api/history/{session_id}").json()["count"] == 0

    def test_history_off_keeps_endpoints_working(self, client, monkeypatch):
        from config import get_settings

        monkeypatch.setattr(get_settings(), "record_history", False)
        session_id = _session()
        assert _convert(client, headers={"X-Session-Id": session_id}).status_code == 200

        response = client.get("/api/history", headers={"X-Session-Id": session_id})

        assert response.status_code == 200
        assert response.json()["records"] == []

    def test_store_unavailable(self, client):
        from api.main import app_state

        app_state["record_store"] = None
        response = client.get("/api/history", headers={"X-Session-Id": _session()})

        assert response.status_code == 503
        assert response.json()["error"] == "データベースが利用できません"


# =============================================================================
# Health, monitoring and pages
# =============================================================================

class TestHealthAndMonitoring:
    def test_health(self, client):
        body = client.get("/api/health").json()

        # No LLM key and in-memory user store in tests
        assert body["status"] == "degraded"
        assert body["services"]["database"]["status"] == "healthy"
        assert body["services"]["llm"]["status"] == "degraded"
        assert body["services"]["user_store"]["status"] == "degraded"
        assert "cpu_percent" in body["system_metrics"]

    def test_readiness_and_liveness(self, client):
        assert client.get("/api/health/live").json()["status"] == "alive"
        assert client.get("/api/health/ready").json()["status"] == "ready"

    def test_ready_fails_without_pipeline(self, client):
        from api.main import app_state

        app_state["pipeline"] = None
        assert client.get("/api/health/ready").status_code == 503

    def test_monitoring_health(self, client):
        body = client.get("/api/monitoring/health").json()

        assert body["success"] is True
        assert body["data"]["services"]["api"] == "healthy"
        assert body["data"]["environment_config"] == "valid"

    def test_monitoring_stats(self, client):
        _convert(client, headers={"X-Session-Id": _session()})
        _convert(client, text="")

        data = client.get("/api/monitoring/stats").json()["data"]

        assert data["totalRequests"] >= 1
        assert data["period"] == "24_hours"
        status_codes = {row["status_code"] for row in data["status_codes"]}
        assert {200, 400} <= status_codes
        assert 0.0 <= data["errorRate"] <= 1.0

    def test_monitoring_stats_without_store(self, client):
        from api.main import app_state

        app_state["record_store"] = None
        assert client.get("/api/monitoring/stats").status_code == 503

    def test_personal_info_counted_in_security_events(self, client):
        _convert(client, text="連絡先 family@example.com")

        events = client.get("/api/monitoring/stats").json()["data"]["security_events"]
        assert any(e["event_type"] == "personal_info_detected" for e in events)

    def test_monitoring_info_and_security(self, client):
        info = client.get("/api/monitoring/info").json()["data"]
        assert info["ai_service"]["max_char_limit"] == 1000
        assert info["features"]["data_persistence"] is True

        security = client.get("/api/monitoring/security").json()["data"]
        assert security["security_features"]["personal_info_detection"] is True
        assert security["environment_validation"]["is_valid"] is True


class TestPages:
    def test_index_page(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "/api/convert" in response.text

    def test_api_root(self, client):
        body = client.get("/api").json()
        assert body["docs"] == "/api/docs"
        assert body["version"] == "1.0.0"
