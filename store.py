#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Wonderland - Store Module (Framework-Independent)
=================================================
Identity bootstrap against the Firebase Auth REST API and the per-user
document store (Cloud Firestore, or an in-memory backend for degraded
mode and tests).

All documents live under artifacts/{app_id}/users/{uid}/{resource}.
Subscribers receive converted models (engine.records_to_models), never raw
snapshots, and always on the asyncio loop.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import requests
from google.auth import credentials as google_credentials
from google.auth import jwt as google_jwt
from google.auth.exceptions import RefreshError

from engine import (
    log, RESOURCES, records_to_models,
    AuthError, StoreReadError, StoreWriteError,
    BackendConfig, DEFAULT_APP_ID,
)


# ===============================================================
# IDENTITY
# ===============================================================

AUTH_BASE_URL = "https://identitytoolkit.googleapis.com/v1"
TOKEN_URL = "https://securetoken.googleapis.com/v1/token"
AUTH_TIMEOUT = 15  # seconds per REST call
TOKEN_LIFETIME = 3600  # seconds, when the response omits expiresIn


@dataclass
class Identity:
    uid: str
    id_token: str = ""
    refresh_token: str = ""
    anonymous: bool = True
    persistent: bool = True   # False → local fallback, nothing reaches the backend
    expires_in: int = TOKEN_LIFETIME  # id_token lifetime in seconds, counted from issue

    def to_session(self) -> Optional[dict]:
        """Minimal data kept in browser storage to reuse this identity."""
        if not self.persistent or not self.refresh_token:
            return None
        return {"uid": self.uid, "refresh_token": self.refresh_token,
                "anonymous": self.anonymous}

    @classmethod
    def local(cls) -> "Identity":
        return cls(uid=uuid.uuid4().hex, persistent=False)


def _uid_from_id_token(id_token: str) -> str:
    """Firebase ID tokens carry the uid in 'user_id' (== 'sub')."""
    try:
        claims = google_jwt.decode(id_token, verify=False)
    except ValueError as e:
        raise AuthError(detail=f"unreadable id token: {e}") from e
    uid = claims.get("user_id") or claims.get("sub")
    if not uid:
        raise AuthError(detail="id token has no subject")
    return uid


class FirebaseAuth:
    """Blocking client for the three Firebase Auth REST calls we need."""

    def __init__(self, api_key: str, session: Optional[requests.Session] = None):
        if not api_key:
            raise AuthError(detail="missing apiKey")
        self.api_key = api_key
        self.http = session or requests

    def _post(self, url: str, **kwargs) -> dict:
        try:
            resp = self.http.post(url, params={"key": self.api_key},
                                  timeout=AUTH_TIMEOUT, **kwargs)
        except requests.RequestException as e:
            raise AuthError(detail=f"transport: {e}") from e
        if resp.status_code != 200:
            try:
                reason = resp.json().get("error", {}).get("message", "")
            except ValueError:
                reason = resp.text[:200]
            raise AuthError(detail=f"HTTP {resp.status_code} {reason}".strip())
        try:
            return resp.json()
        except ValueError as e:
            raise AuthError(detail="response is not JSON") from e

    def sign_in_anonymously(self) -> Identity:
        data = self._post(f"{AUTH_BASE_URL}/accounts:signUp",
                          json={"returnSecureToken": True})
        return Identity(uid=data["localId"], id_token=data["idToken"],
                        refresh_token=data["refreshToken"], anonymous=True,
                        expires_in=_lifetime(data.get("expiresIn")))

    def sign_in_with_custom_token(self, token: str) -> Identity:
        data = self._post(f"{AUTH_BASE_URL}/accounts:signInWithCustomToken",
                          json={"token": token, "returnSecureToken": True})
        id_token = data["idToken"]
        return Identity(uid=_uid_from_id_token(id_token), id_token=id_token,
                        refresh_token=data["refreshToken"], anonymous=False,
                        expires_in=_lifetime(data.get("expiresIn")))

    def refresh(self, refresh_token: str, anonymous: bool = True) -> Identity:
        # The token endpoint answers in snake_case, unlike identitytoolkit
        data = self._post(TOKEN_URL, data={"grant_type": "refresh_token",
                                           "refresh_token": refresh_token})
        return Identity(uid=data["user_id"], id_token=data["id_token"],
                        refresh_token=data["refresh_token"], anonymous=anonymous,
                        expires_in=_lifetime(data.get("expires_in")))


def _lifetime(value: Any) -> int:
    """expiresIn arrives as a string of seconds ("3600")."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return TOKEN_LIFETIME


def _utcnow() -> datetime:
    # google-auth compares expiry against naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)


class FirebaseCredentials(google_credentials.Credentials):
    """google-auth credentials carrying a Firebase ID token.

    The Firestore client calls refresh() shortly before `expiry`; the new
    token comes from the securetoken endpoint and is written back to the
    identity so later writes and watch reconnects use it.
    """

    def __init__(self, identity: Identity, auth: FirebaseAuth):
        super().__init__()
        self.identity = identity
        self.auth = auth
        self.token = identity.id_token or None
        if self.token:
            self.expiry = _utcnow() + timedelta(seconds=identity.expires_in)

    def refresh(self, request) -> None:
        if not self.identity.refresh_token:
            raise RefreshError("Identity has no refresh token")
        try:
            fresh = self.auth.refresh(self.identity.refresh_token, self.identity.anonymous)
        except AuthError as e:
            log(f"[Auth] Token refresh failed for uid={self.identity.uid}: {e}", level="error")
            raise RefreshError(f"Firebase token refresh failed: {e}") from e
        self.identity.id_token = fresh.id_token
        self.identity.refresh_token = fresh.refresh_token
        self.identity.expires_in = fresh.expires_in
        self.token = fresh.id_token
        self.expiry = _utcnow() + timedelta(seconds=fresh.expires_in)
        log(f"[Auth] ID token refreshed for uid={self.identity.uid}", level="debug")


async def bootstrap_identity(config: Optional[BackendConfig],
                             saved_session: Optional[dict] = None,
                             auth: Optional[FirebaseAuth] = None) -> Identity:
    """Reuse the saved session, else exchange the one-time token, else sign in anonymously.

    Never raises: any AuthError degrades to a local, non-persistent identity.
    """
    if config is None:
        log("[Auth] No backend config, using a local identity", level="warning")
        return Identity.local()
    try:
        auth = auth or FirebaseAuth(config.api_key)
        if saved_session and saved_session.get("refresh_token"):
            try:
                identity = await asyncio.to_thread(
                    auth.refresh, saved_session["refresh_token"],
                    saved_session.get("anonymous", True))
                log(f"[Auth] Session reused: uid={identity.uid}")
                return identity
            except AuthError as e:
                # Stale session: fall through to a fresh sign-in
                log(f"[Auth] Saved session rejected ({e}), signing in again", level="warning")
        if config.initial_auth_token:
            identity = await asyncio.to_thread(auth.sign_in_with_custom_token,
                                               config.initial_auth_token)
            log(f"[Auth] Signed in with custom token: uid={identity.uid}")
            return identity
        identity = await asyncio.to_thread(auth.sign_in_anonymously)
        log(f"[Auth] Signed in anonymously: uid={identity.uid}")
        return identity
    except (AuthError, KeyError) as e:
        identity = Identity.local()
        log(f"[Auth] Sign-in failed ({e}), degraded to local identity {identity.uid}",
            level="error")
        return identity


# ===============================================================
# SUBSCRIPTIONS
# ===============================================================

class Subscription:
    """Handle for one live listener. cancel() may be called any number of times."""

    def __init__(self, resource: str, cancel_fn: Optional[Callable[[], None]] = None):
        self.resource = resource
        self._cancel_fn = cancel_fn
        self.active = True

    def cancel(self) -> None:
        if not self.active:
            return
        self.active = False
        fn, self._cancel_fn = self._cancel_fn, None
        if fn:
            fn()


class SubscriptionGroup:
    """All subscriptions of one mounted page, torn down together."""

    def __init__(self):
        self._subs: list[Subscription] = []

    def add(self, sub: Subscription) -> Subscription:
        self._subs.append(sub)
        return sub

    def cancel_all(self) -> None:
        subs, self._subs = self._subs, []
        for sub in subs:
            sub.cancel()
        if subs:
            log(f"[Store] Cancelled {len(subs)} subscription(s)", level="debug")

    def __len__(self):
        return len(self._subs)


# ===============================================================
# DOCUMENT STORE
# ===============================================================

OnChange = Callable[[Any], None]
OnError = Optional[Callable[[StoreReadError], None]]


class DocumentStore(ABC):
    """Per-user document store. Backends implement the four primitives below."""

    persistent = True

    def __init__(self, app_id: str, uid: str):
        self.app_id = app_id or DEFAULT_APP_ID
        self.uid = uid

    def collection_path(self, resource: str) -> str:
        if resource not in RESOURCES:
            raise ValueError(f"Unknown resource: {resource}")
        return f"artifacts/{self.app_id}/users/{self.uid}/{resource}"

    @abstractmethod
    def subscribe(self, resource: str, on_change: OnChange,
                  on_error: OnError = None) -> Subscription:
        """Push the ordered collection now and after every change."""

    @abstractmethod
    def subscribe_singleton(self, resource: str, key: str, on_change: OnChange,
                            on_error: OnError = None) -> Subscription:
        """Push the keyed document (None while absent) now and after every change."""

    @abstractmethod
    async def create(self, resource: str, fields: dict) -> str:
        """Add a document with a store-assigned id and timestamp. Returns the id."""

    @abstractmethod
    async def set_singleton(self, resource: str, key: str, fields: dict) -> None:
        """Overwrite the keyed document."""

    @staticmethod
    def _read_failed(resource: str, exc: Exception, on_error: OnError) -> None:
        err = StoreReadError(resource=resource, detail=str(exc))
        log(f"[Store] Could not decode '{resource}' snapshot: {exc}", level="error")
        if on_error:
            on_error(err)

    @classmethod
    def _deliver(cls, resource: str, docs: Any, on_change: OnChange, on_error: OnError,
                 singleton_key: Optional[str] = None) -> None:
        """Decode raw docs and hand the models to the subscriber."""
        try:
            if singleton_key is not None:
                payload = None
                if docs is not None:
                    payload = RESOURCES[resource].model.from_doc(singleton_key, docs)
            else:
                payload = records_to_models(resource, docs)
        except (TypeError, ValueError, AttributeError, KeyError) as e:
            cls._read_failed(resource, e, on_error)
            return
        on_change(payload)


class FirestoreStore(DocumentStore):
    """Cloud Firestore backend authenticated with the user's Firebase ID token.

    Watch callbacks arrive on the client's listener thread and are re-posted
    to the event loop.
    """

    def __init__(self, config: BackendConfig, identity: Identity,
                 loop: Optional[asyncio.AbstractEventLoop] = None, client=None):
        super().__init__(config.app_id, identity.uid)
        self.loop = loop or asyncio.get_running_loop()
        if client is None:
            from google.cloud import firestore
            credentials = FirebaseCredentials(identity, FirebaseAuth(config.api_key))
            client = firestore.Client(project=config.project_id, credentials=credentials)
        self.client = client
        log(f"[Store] Firestore ready: project={config.project_id}, app_id={self.app_id}")

    def _collection(self, resource: str):
        return self.client.collection(self.collection_path(resource))

    def _post(self, fn, *args) -> None:
        try:
            self.loop.call_soon_threadsafe(fn, *args)
        except RuntimeError:
            log("[Store] Snapshot arrived after the loop closed, dropped", level="debug")

    def _deliver_snapshot(self, resource, raw, on_change, on_error):
        try:
            docs = [dict(data or {}, id=doc_id) for doc_id, data in raw]
        except (TypeError, ValueError) as e:
            self._read_failed(resource, e, on_error)
            return
        self._deliver(resource, docs, on_change, on_error)

    def subscribe(self, resource, on_change, on_error=None):
        from google.cloud import firestore

        spec = RESOURCES[resource]
        query = self._collection(resource)
        if spec.timestamp_field:
            direction = firestore.Query.DESCENDING if spec.newest_first else firestore.Query.ASCENDING
            query = query.order_by(spec.timestamp_field, direction=direction)

        def _on_snapshot(docs, _changes, _read_time):
            raw = [(d.id, d.to_dict()) for d in docs]
            self._post(self._deliver_snapshot, resource, raw, on_change, on_error)

        watch = query.on_snapshot(_on_snapshot)
        log(f"[Store] Subscribed: {resource}", level="debug")
        return Subscription(resource, watch.unsubscribe)

    def subscribe_singleton(self, resource, key, on_change, on_error=None):
        ref = self._collection(resource).document(key)

        def _on_snapshot(docs, _changes, _read_time):
            snap = docs[0] if docs else None
            data = snap.to_dict() if snap is not None and snap.exists else None
            self._post(self._deliver, resource, data, on_change, on_error, key)

        watch = ref.on_snapshot(_on_snapshot)
        log(f"[Store] Subscribed: {resource}/{key}", level="debug")
        return Subscription(resource, watch.unsubscribe)

    def _stamped(self, resource: str, fields: dict) -> dict:
        from google.cloud import firestore

        data = dict(fields)
        ts_field = RESOURCES[resource].timestamp_field
        if ts_field:
            data[ts_field] = firestore.SERVER_TIMESTAMP
        return data

    async def create(self, resource, fields):
        from google.api_core.exceptions import GoogleAPIError
        from google.auth.exceptions import GoogleAuthError

        data = self._stamped(resource, fields)
        try:
            _, ref = await asyncio.to_thread(self._collection(resource).add, data)
        except (GoogleAPIError, GoogleAuthError) as e:
            raise StoreWriteError(resource=resource, detail=str(e)) from e
        return ref.id

    async def set_singleton(self, resource, key, fields):
        from google.api_core.exceptions import GoogleAPIError
        from google.auth.exceptions import GoogleAuthError

        ref = self._collection(resource).document(key)
        try:
            await asyncio.to_thread(ref.set, self._stamped(resource, fields))
        except (GoogleAPIError, GoogleAuthError) as e:
            raise StoreWriteError(resource=resource, detail=str(e)) from e


@dataclass
class _Listener:
    resource: str
    on_change: OnChange
    on_error: OnError
    key: Optional[str] = None


class MemoryStore(DocumentStore):
    """Process-local backend. Subscribers are notified synchronously after each write."""

    persistent = False

    def __init__(self, app_id: str = DEFAULT_APP_ID, uid: str = "local"):
        super().__init__(app_id, uid)
        self._docs: dict[str, dict[str, dict]] = {}
        self._listeners: list[_Listener] = []
        self._last_ts = datetime.min.replace(tzinfo=timezone.utc)
        self.fail_writes: Optional[str] = None  # set to a message to simulate outages

    def _now(self) -> datetime:
        # Strictly increasing so ordering is stable within the same clock tick
        now = datetime.now(timezone.utc)
        if now <= self._last_ts:
            now = self._last_ts + timedelta(microseconds=1)
        self._last_ts = now
        return now

    def records(self, resource: str) -> list[dict]:
        path = self.collection_path(resource)
        return [dict(data, id=doc_id) for doc_id, data in self._docs.get(path, {}).items()]

    def _push(self, listener: _Listener) -> None:
        if listener.key is not None:
            path = self.collection_path(listener.resource)
            data = self._docs.get(path, {}).get(listener.key)
            self._deliver(listener.resource, dict(data) if data else None,
                          listener.on_change, listener.on_error, listener.key)
        else:
            self._deliver(listener.resource, self.records(listener.resource),
                          listener.on_change, listener.on_error)

    def _notify(self, resource: str) -> None:
        for listener in list(self._listeners):
            if listener.resource == resource:
                self._push(listener)

    def _subscribe(self, listener: _Listener) -> Subscription:
        self.collection_path(listener.resource)  # validates resource
        self._listeners.append(listener)
        self._push(listener)
        return Subscription(listener.resource, lambda: self._listeners.remove(listener))

    def subscribe(self, resource, on_change, on_error=None):
        return self._subscribe(_Listener(resource, on_change, on_error))

    def subscribe_singleton(self, resource, key, on_change, on_error=None):
        return self._subscribe(_Listener(resource, on_change, on_error, key))

    def _check_write(self, resource: str) -> None:
        if self.fail_writes:
            raise StoreWriteError(resource=resource, detail=self.fail_writes)

    async def create(self, resource, fields):
        self._check_write(resource)
        path = self.collection_path(resource)
        data = dict(fields)
        ts_field = RESOURCES[resource].timestamp_field
        if ts_field:
            data[ts_field] = self._now()
        doc_id = uuid.uuid4().hex
        self._docs.setdefault(path, {})[doc_id] = data
        self._notify(resource)
        return doc_id

    async def set_singleton(self, resource, key, fields):
        self._check_write(resource)
        path = self.collection_path(resource)
        self._docs.setdefault(path, {})[key] = dict(fields)
        self._notify(resource)


def open_store(config: Optional[BackendConfig], identity: Identity) -> DocumentStore:
    """Firestore for a persistent identity with a config, memory otherwise."""
    if config is not None and identity.persistent:
        return FirestoreStore(config, identity)
    app_id = config.app_id if config is not None else DEFAULT_APP_ID
    log(f"[Store] Using in-memory store for uid={identity.uid} (nothing persists)",
        level="warning")
    return MemoryStore(app_id, identity.uid)
