"""Signed cookie sessions."""

from __future__ import annotations

import base64
import binascii
import functools
import hashlib
import hmac
import json
import os
import secrets
import time
from typing import Any, MutableMapping

SESSION_NAME = "_trueauth_session"
SESSION_KEY_ENV = "TRUEAUTH_SESSION_KEY"
DEFAULT_MAX_AGE = 86400 * 30


class SessionError(Exception):
    """A session cookie is missing, invalid or lacks the requested value."""


class CookieSessionStore:
    """Stores session values in an HMAC-signed, timestamped cookie."""

    def __init__(self, key: bytes, name: str = SESSION_NAME, max_age: int = DEFAULT_MAX_AGE) -> None:
        if not key:
            raise ValueError("session key must not be empty")
        self.key = key
        self.name = name
        self.max_age = max_age

    def _signature(self, timestamp: str, data: str) -> str:
        message = f"{self.name}|{timestamp}|{data}".encode()
        return hmac.new(self.key, message, hashlib.sha256).hexdigest()

    def save(self, values: dict[str, Any]) -> str:
        """Encode session values as a cookie value."""
        data = base64.urlsafe_b64encode(json.dumps(values, separators=(",", ":")).encode()).decode()
        timestamp = str(int(time.time()))
        return f"{data}|{timestamp}|{self._signature(timestamp, data)}"

    def load(self, cookie: str) -> dict[str, Any]:
        """Decode and verify a cookie value made by ``save``."""
        parts = cookie.split("|")
        if len(parts) != 3:
            raise SessionError("invalid session cookie")
        data, timestamp, signature = parts
        if not hmac.compare_digest(signature, self._signature(timestamp, data)):
            raise SessionError("session cookie signature mismatch")
        try:
            issued = int(timestamp)
        except ValueError as exc:
            raise SessionError("invalid session cookie timestamp") from exc
        if self.max_age > 0 and issued < time.time() - self.max_age:
            raise SessionError("session cookie expired")
        try:
            values = json.loads(base64.urlsafe_b64decode(data.encode()))
        except (binascii.Error, ValueError) as exc:
            raise SessionError("invalid session cookie payload") from exc
        if not isinstance(values, dict):
            raise SessionError("invalid session cookie payload")
        return values


@functools.lru_cache(maxsize=None)
def default_store() -> CookieSessionStore:
    """The process-wide store, keyed from the environment or a random key."""
    key = os.environ.get(SESSION_KEY_ENV, "").encode()
    if not key:
        key = secrets.token_bytes(32)
    return CookieSessionStore(key)


def _session_values(cookies: MutableMapping[str, str], store: CookieSessionStore) -> dict[str, Any]:
    cookie = cookies.get(store.name)
    if not cookie:
        return {}
    try:
        return store.load(cookie)
    except SessionError:
        return {}


def store_in_session(
    key: str,
    value: str,
    cookies: MutableMapping[str, str],
    store: CookieSessionStore | None = None,
) -> str:
    """Set ``key`` in the session held in ``cookies``; returns the new cookie value."""
    store = store or default_store()
    values = _session_values(cookies, store)
    values[key] = value
    cookie = store.save(values)
    cookies[store.name] = cookie
    return cookie


def get_from_session(
    key: str,
    cookies: MutableMapping[str, str],
    store: CookieSessionStore | None = None,
) -> str:
    """Read ``key`` from the session held in ``cookies``."""
    store = store or default_store()
    values = _session_values(cookies, store)
    if key not in values:
        raise SessionError("session could not be found for this request")
    value = values[key]
    if not isinstance(value, str):
        raise SessionError("session value is not a string")
    return value