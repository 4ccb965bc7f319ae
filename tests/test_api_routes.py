"""
tests/test_api_routes.py -- Integration tests for the transform, auth, and vault API.

These tests exercise the full stack: FastAPI routing -> auth dependency
injection -> AccountStore/VaultStore operations -> response model
serialization -> exception handlers. Unit testing route functions alone would
miss middleware, dependency injection, and the error envelope.

Coverage:
  - Transform: happy path, empty text, oversize text (422), backend failure (502)
  - Signup: 201 with secret + QR, duplicate email any case (409), bad email (422)
  - Login: valid code 200 + cookie, wrong or malformed code 401, unknown
    user 404, OTP disabled 403, no-store headers, same envelope as the handlers
  - Me / delete-me: 401 without token, 200 with Bearer, 204 then token dead
  - Vault: create/list/delete, IDOR (other account's entry -> 404)
  - Domain errors from the stores -> 503 store_unavailable envelope

Fixtures used (from conftest.py):
  - api_client: TestClient over isolated shared-memory stores; the client
    keeps cookies between requests, so each test starts with an empty jar.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from auth.models import UserAccount
from core.errors import StoreUnavailable, TransformUnavailable


@pytest.fixture(autouse=True)
def _clear_cookies(api_client: TestClient):
    api_client.cookies.clear()
    yield
    api_client.cookies.clear()


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestTransformRoute:
    def test_forge_password(self, api_client: TestClient) -> None:
        """POST /api/v1/transform substitutes, pads with 5 fillers, and shuffles."""
        resp = api_client.post("/api/v1/transform", json={"text": "hi"})
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        data = resp.json()
        assert data["length"] == len(data["password"]) == 7
        assert "#" in data["password"] and "i" in data["password"]

    def test_no_auth_required(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/transform", json={"text": "Blue Harbor"}, headers={})
        assert resp.status_code == 200

    def test_empty_text_yields_empty_password(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/transform", json={"text": ""})
        assert resp.status_code == 200
        assert resp.json() == {"password": "", "length": 0}

    def test_oversize_text_rejected(self, api_client: TestClient) -> None:
        """Validation failures use the standard error envelope."""
        resp = api_client.post("/api/v1/transform", json={"text": "x" * 1001})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_remote_backend_failure_is_502(self, api_client: TestClient) -> None:
        engine = api_client.app.state.engine
        with patch.object(engine, "converter", MagicMock(side_effect=TransformUnavailable())):
            resp = api_client.post("/api/v1/transform", json={"text": "hi"})
        assert resp.status_code == 502
        assert resp.json()["error"]["code"] == "transform_unavailable"


class TestSignup:
    def test_signup_returns_secret_and_qr(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/signup", json={"email": "New.User@Example.com"})
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        data = resp.json()
        assert data["email"] == "new.user@example.com"
        assert len(data["secret"]) == 32
        assert data["provisioning_uri"].startswith("otpauth://totp/")
        assert data["qr_code"].startswith("data:image/svg+xml;base64,")
        assert resp.headers["Cache-Control"] == "no-store"

    def test_duplicate_email_any_case(self, api_client: TestClient) -> None:
        assert api_client.post("/api/v1/auth/signup", json={"email": "twice@example.com"}).status_code == 201
        resp = api_client.post("/api/v1/auth/signup", json={"email": "TWICE@example.com"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "email_already_registered"
        assert "secret" not in resp.text

    @pytest.mark.parametrize("email", ["", "no-at-sign", "a@b", "two words@example.com"])
    def test_malformed_email_rejected(self, api_client: TestClient, email: str) -> None:
        resp = api_client.post("/api/v1/auth/signup", json={"email": email})
        assert resp.status_code == 422

    def test_registration_disabled(self, api_client: TestClient) -> None:
        with patch("api.routes.v1.auth._settings") as settings:
            settings.self_registration_enabled = False
            resp = api_client.post("/api/v1/auth/signup", json={"email": "closed@example.com"})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "registration_disabled"


class TestLogin:
    def test_valid_code_returns_token_and_cookie(self, api_client: TestClient, totp_now) -> None:
        secret = api_client.post("/api/v1/auth/signup", json={"email": "login@example.com"}).json()["secret"]
        resp = api_client.post("/api/v1/auth/login", json={"email": "login@example.com", "code": totp_now(secret)})
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        data = resp.json()
        assert data["token_type"] == "bearer"
        assert data["email"] == "login@example.com"
        assert data["expires_in"] > 0
        assert "access_token" in resp.cookies
        assert resp.headers["Cache-Control"] == "no-store"

    def test_wrong_code(self, api_client: TestClient, totp_wrong) -> None:
        secret = api_client.post("/api/v1/auth/signup", json={"email": "wrong@example.com"}).json()["secret"]
        bad = totp_wrong(secret)
        resp = api_client.post("/api/v1/auth/login", json={"email": "wrong@example.com", "code": bad})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "invalid_code"
        assert "access_token" not in resp.cookies
        assert resp.headers["Cache-Control"] == "no-store"

    def test_unknown_user(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "code": "123456"})
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "user_not_found"

    def test_otp_not_enabled(self, api_client: TestClient) -> None:
        store = api_client.app.state.auth.store
        store.create_account(UserAccount(email="legacy@example.com"))
        resp = api_client.post("/api/v1/auth/login", json={"email": "legacy@example.com", "code": "123456"})
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "otp_not_enabled"

    @pytest.mark.parametrize("code", ["12345", "1234567890123", "12 34 5a"])
    def test_malformed_code_is_invalid_code(self, api_client: TestClient, sign_up_and_log_in, code: str) -> None:
        """A code that is not six digits fails like a wrong code: 401 invalid_code, not 422."""
        email = f"short-{len(code)}-{code[-1]}@example.com"
        sign_up_and_log_in(api_client, email)
        api_client.cookies.clear()
        resp = api_client.post("/api/v1/auth/login", json={"email": email, "code": code})
        assert resp.status_code == 401, f"Expected 401, got {resp.status_code}: {resp.text}"
        assert resp.json()["error"]["code"] == "invalid_code"
        assert resp.headers["Cache-Control"] == "no-store"

    def test_oversize_code_is_validation_error(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/login", json={"email": "x@example.com", "code": "1" * 65})
        assert resp.status_code == 422

    def test_error_envelope_matches_handler_shape(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/login", json={"email": "ghost2@example.com", "code": "123456"})
        assert resp.json() == {
            "error": {"code": "user_not_found", "message": "No account is registered with this email.", "detail": None}
        }

    def test_logout_clears_cookie(self, api_client: TestClient) -> None:
        resp = api_client.post("/api/v1/auth/logout")
        assert resp.status_code == 200
        assert "access_token" in resp.headers.get("set-cookie", "")


class TestMe:
    def test_unauthenticated(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_garbage_token(self, api_client: TestClient) -> None:
        resp = api_client.get("/api/v1/auth/me", headers=_bearer("not-a-jwt"))
        assert resp.status_code == 401

    def test_bearer_token(self, api_client: TestClient, sign_up_and_log_in) -> None:
        _secret, token = sign_up_and_log_in(api_client, "me@example.com")
        api_client.cookies.clear()
        resp = api_client.get("/api/v1/auth/me", headers=_bearer(token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["email"] == "me@example.com"
        assert data["otp_enabled"] is True
        assert data["last_login"]

    def test_cookie_session(self, api_client: TestClient, sign_up_and_log_in) -> None:
        sign_up_and_log_in(api_client, "cookie@example.com")
        resp = api_client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["email"] == "cookie@example.com"

    def test_delete_account(self, api_client: TestClient, sign_up_and_log_in) -> None:
        _secret, token = sign_up_and_log_in(api_client, "leaving@example.com")
        api_client.cookies.clear()
        api_client.post("/api/v1/vault", json={"label": "mail", "value": "x"}, headers=_bearer(token))

        resp = api_client.delete("/api/v1/auth/me", headers=_bearer(token))
        assert resp.status_code == 204
        assert api_client.get("/api/v1/auth/me", headers=_bearer(token)).status_code == 401
        # Email is free again.
        assert api_client.post("/api/v1/auth/signup", json={"email": "leaving@example.com"}).status_code == 201


class TestVaultRoutes:
    def test_requires_auth(self, api_client: TestClient) -> None:
        assert api_client.get("/api/v1/vault").status_code == 401
        assert api_client.post("/api/v1/vault", json={"label": "a", "value": "b"}).status_code == 401
        assert api_client.delete("/api/v1/vault/1").status_code == 401

    def test_create_list_delete(self, api_client: TestClient, sign_up_and_log_in) -> None:
        _secret, token = sign_up_and_log_in(api_client, "saver@example.com")
        api_client.cookies.clear()
        headers = _bearer(token)

        resp = api_client.post("/api/v1/vault", json={"label": "bank", "value": "#3!!0"}, headers=headers)
        assert resp.status_code == 201, f"Expected 201, got {resp.status_code}: {resp.text}"
        entry = resp.json()
        assert entry["label"] == "bank" and entry["value"] == "#3!!0"

        listing = api_client.get("/api/v1/vault", headers=headers).json()
        assert [e["id"] for e in listing] == [entry["id"]]

        assert api_client.delete(f"/api/v1/vault/{entry['id']}", headers=headers).status_code == 204
        assert api_client.get("/api/v1/vault", headers=headers).json() == []

    def test_cannot_touch_other_accounts_entries(self, api_client: TestClient, sign_up_and_log_in) -> None:
        _s, owner = sign_up_and_log_in(api_client, "owner@example.com")
        _s, intruder = sign_up_and_log_in(api_client, "intruder@example.com")
        api_client.cookies.clear()

        entry_id = api_client.post(
            "/api/v1/vault", json={"label": "secret", "value": "v"}, headers=_bearer(owner)
        ).json()["id"]

        assert api_client.get("/api/v1/vault", headers=_bearer(intruder)).json() == []
        resp = api_client.delete(f"/api/v1/vault/{entry_id}", headers=_bearer(intruder))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"
        assert len(api_client.get("/api/v1/vault", headers=_bearer(owner)).json()) == 1


class TestStoreFailures:
    def test_store_unavailable_maps_to_503(self, api_client: TestClient) -> None:
        store = api_client.app.state.auth.store
        with patch.object(store, "get_by_email", side_effect=StoreUnavailable()):
            resp = api_client.post("/api/v1/auth/login", json={"email": "any@example.com", "code": "123456"})
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "store_unavailable"

    def test_vault_failure_uses_envelope(self, api_client: TestClient, sign_up_and_log_in) -> None:
        _secret, token = sign_up_and_log_in(api_client, "outage@example.com")
        api_client.cookies.clear()
        vault = api_client.app.state.vault
        with patch.object(vault, "list_entries", side_effect=StoreUnavailable()):
            resp = api_client.get("/api/v1/vault", headers=_bearer(token))
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "store_unavailable"
