import asyncio
import base64
import json

import pytest
import requests
from google.auth.exceptions import RefreshError

from engine import AuthError, BackendConfig
from store import TOKEN_URL, FirebaseAuth, FirebaseCredentials, Identity, bootstrap_identity

CONFIG = BackendConfig(firebase={"apiKey": "key-1", "authDomain": "w.firebaseapp.com"},
                       app_id="tribute", source="host")


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _fake_id_token(uid: str) -> str:
    header = _b64(json.dumps({"alg": "RS256", "typ": "JWT"}).encode())
    payload = _b64(json.dumps({"user_id": uid, "sub": uid}).encode())
    return f"{header}.{payload}.{_b64(b'signature')}"


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body
        self.text = json.dumps(body)

    def json(self):
        return self._body


class FakeAuth:
    """Records which sign-in path bootstrap took."""

    def __init__(self, fail=()):
        self.calls = []
        self.fail = set(fail)

    def _maybe_fail(self, name):
        self.calls.append(name)
        if name in self.fail:
            raise AuthError(detail=f"{name} refused")

    def refresh(self, refresh_token, anonymous=True):
        self._maybe_fail("refresh")
        return Identity(uid="saved-uid", id_token="id", refresh_token="r2", anonymous=anonymous)

    def sign_in_with_custom_token(self, token):
        self._maybe_fail("custom")
        return Identity(uid="token-uid", id_token="id", refresh_token="r", anonymous=False)

    def sign_in_anonymously(self):
        self._maybe_fail("anonymous")
        return Identity(uid="anon-uid", id_token="id", refresh_token="r")


def test_anonymous_when_nothing_saved():
    auth = FakeAuth()
    identity = asyncio.run(bootstrap_identity(CONFIG, None, auth=auth))
    assert identity.uid == "anon-uid"
    assert identity.persistent
    assert auth.calls == ["anonymous"]


def test_saved_session_is_reused():
    auth = FakeAuth()
    session = {"uid": "saved-uid", "refresh_token": "r1", "anonymous": True}
    identity = asyncio.run(bootstrap_identity(CONFIG, session, auth=auth))
    assert identity.uid == "saved-uid"
    assert auth.calls == ["refresh"]


def test_custom_token_exchanged():
    cfg = BackendConfig(firebase=CONFIG.firebase, app_id="tribute", initial_auth_token="one-time")
    auth = FakeAuth()
    identity = asyncio.run(bootstrap_identity(cfg, None, auth=auth))
    assert identity.uid == "token-uid"
    assert not identity.anonymous
    assert auth.calls == ["custom"]


def test_stale_session_falls_back_to_sign_in():
    auth = FakeAuth(fail={"refresh"})
    identity = asyncio.run(bootstrap_identity(CONFIG, {"refresh_token": "old"}, auth=auth))
    assert identity.uid == "anon-uid"
    assert auth.calls == ["refresh", "anonymous"]


def test_auth_failure_degrades_to_local_identity():
    auth = FakeAuth(fail={"anonymous"})
    identity = asyncio.run(bootstrap_identity(CONFIG, None, auth=auth))
    assert not identity.persistent
    assert identity.uid
    assert identity.to_session() is None


def test_missing_config_gives_local_identity():
    identity = asyncio.run(bootstrap_identity(None))
    assert not identity.persistent


def test_local_identities_are_distinct():
    assert Identity.local().uid != Identity.local().uid


def test_to_session_round_trip_fields():
    ident = Identity(uid="u", id_token="id", refresh_token="r", anonymous=False)
    assert ident.to_session() == {"uid": "u", "refresh_token": "r", "anonymous": False}


# ── REST client ─────────────────────────────────────────────

def test_sign_in_anonymously_parses_response(monkeypatch):
    seen = {}

    def fake_post(url, params=None, timeout=None, **kwargs):
        seen.update(url=url, params=params, json=kwargs.get("json"))
        return FakeResponse(200, {"localId": "abc", "idToken": "id", "refreshToken": "r"})

    monkeypatch.setattr(requests, "post", fake_post)
    identity = FirebaseAuth("key-1").sign_in_anonymously()
    assert identity.uid == "abc"
    assert seen["url"].endswith("accounts:signUp")
    assert seen["params"] == {"key": "key-1"}
    assert seen["json"] == {"returnSecureToken": True}


def test_custom_token_uid_comes_from_id_token(monkeypatch):
    token = _fake_id_token("user-42")
    monkeypatch.setattr(requests, "post", lambda url, **kw: FakeResponse(
        200, {"idToken": token, "refreshToken": "r"}))
    identity = FirebaseAuth("key-1").sign_in_with_custom_token("custom")
    assert identity.uid == "user-42"
    assert not identity.anonymous


def test_refresh_uses_token_endpoint(monkeypatch):
    seen = {}

    def fake_post(url, **kwargs):
        seen.update(url=url, data=kwargs.get("data"))
        return FakeResponse(200, {"user_id": "u1", "id_token": "id2", "refresh_token": "r2"})

    monkeypatch.setattr(requests, "post", fake_post)
    identity = FirebaseAuth("key-1").refresh("r1")
    assert identity.uid == "u1"
    assert identity.refresh_token == "r2"
    assert seen["url"].startswith("https://securetoken.googleapis.com")
    assert seen["data"] == {"grant_type": "refresh_token", "refresh_token": "r1"}


def test_http_error_raises_auth_error(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda url, **kw: FakeResponse(
        400, {"error": {"message": "ADMIN_ONLY_OPERATION"}}))
    with pytest.raises(AuthError, match="ADMIN_ONLY_OPERATION"):
        FirebaseAuth("key-1").sign_in_anonymously()


def test_transport_error_raises_auth_error(monkeypatch):
    def boom(url, **kw):
        raise requests.ConnectionError("offline")

    monkeypatch.setattr(requests, "post", boom)
    with pytest.raises(AuthError):
        FirebaseAuth("key-1").sign_in_anonymously()


def test_missing_api_key_rejected():
    with pytest.raises(AuthError):
        FirebaseAuth("")


def test_bootstrap_survives_rest_failure(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda url, **kw: FakeResponse(500, {}))
    identity = asyncio.run(bootstrap_identity(CONFIG))
    assert not identity.persistent


def test_sign_in_records_token_lifetime(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda url, **kw: FakeResponse(
        200, {"localId": "abc", "idToken": "id", "refreshToken": "r", "expiresIn": "1800"}))
    assert FirebaseAuth("key-1").sign_in_anonymously().expires_in == 1800


# ── Firestore credentials ───────────────────────────────────

def test_expired_credentials_refresh_through_token_endpoint(monkeypatch):
    seen = []

    def fake_post(url, **kwargs):
        seen.append((url, kwargs.get("data")))
        return FakeResponse(200, {"user_id": "u1", "id_token": "id-new",
                                  "refresh_token": "r1", "expires_in": "3600"})

    monkeypatch.setattr(requests, "post", fake_post)
    identity = Identity(uid="u1", id_token="id-old", refresh_token="r1", expires_in=0)
    creds = FirebaseCredentials(identity, FirebaseAuth("key-1"))
    assert creds.expired

    headers = {}
    creds.before_request(None, "POST", "https://firestore.googleapis.com/", headers)

    assert seen == [(TOKEN_URL, {"grant_type": "refresh_token", "refresh_token": "r1"})]
    assert headers["authorization"] == "Bearer id-new"
    assert creds.valid
    assert identity.id_token == "id-new"


def test_fresh_credentials_do_not_refresh(monkeypatch):
    def boom(url, **kw):
        raise AssertionError("no refresh expected")

    monkeypatch.setattr(requests, "post", boom)
    creds = FirebaseCredentials(Identity(uid="u1", id_token="id", refresh_token="r1"),
                                FirebaseAuth("key-1"))
    headers = {}
    creds.before_request(None, "GET", "https://firestore.googleapis.com/", headers)
    assert headers["authorization"] == "Bearer id"


def test_rejected_refresh_raises_refresh_error(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda url, **kw: FakeResponse(
        400, {"error": {"message": "TOKEN_EXPIRED"}}))
    creds = FirebaseCredentials(Identity(uid="u1", id_token="id", refresh_token="r1"),
                                FirebaseAuth("key-1"))
    with pytest.raises(RefreshError, match="TOKEN_EXPIRED"):
        creds.refresh(None)


def test_credentials_without_refresh_token_cannot_refresh():
    creds = FirebaseCredentials(Identity(uid="u1", id_token="id"), FirebaseAuth("key-1"))
    with pytest.raises(RefreshError):
        creds.refresh(None)
