import time
from unittest.mock import patch

import pytest

from trueauth.session import (
    CookieSessionStore,
    SessionError,
    default_store,
    get_from_session,
    store_in_session,
)


@pytest.fixture
def store():
    return CookieSessionStore(b"secret")


def test_save_load_round_trip(store):
    values = {"provider": "email", "flow": "signup"}
    assert store.load(store.save(values)) == values


def test_tampered_cookie_is_rejected(store):
    data, timestamp, signature = store.save({"provider": "email"}).split("|")
    forged = store.save({"provider": "other"}).split("|")[0]
    with pytest.raises(SessionError):
        store.load(f"{forged}|{timestamp}|{signature}")


def test_cookie_from_other_key_is_rejected(store):
    other = CookieSessionStore(b"placeholder")
    with pytest.raises(SessionError):
        store.load(other.save({"provider": "email"}))


def test_malformed_cookie_is_rejected(store):
    with pytest.raises(SessionError):
        store.load("garbage")


def test_expired_cookie_is_rejected():
    short = CookieSessionStore(b"secret", max_age=60)
    cookie = short.save({"provider": "email"})
    later = time.time() + 120
    with patch("time.time", return_value=later):
        with pytest.raises(SessionError, match="expired"):
            short.load(cookie)


def test_empty_key_is_rejected():
    with pytest.raises(ValueError):
        CookieSessionStore(b"")


def test_store_and_get(store):
    cookies = {}
    store_in_session("provider", "email", cookies, store)
    assert get_from_session("provider", cookies, store) == "email"


def test_store_keeps_existing_values(store):
    cookies = {}
    store_in_session("provider", "email", cookies, store)
    store_in_session("flow", "signup", cookies, store)
    assert get_from_session("provider", cookies, store) == "email"
    assert get_from_session("flow", cookies, store) == "signup"


def test_store_replaces_invalid_cookie(store):
    cookies = {store.name: "garbage"}
    store_in_session("provider", "email", cookies, store)
    assert get_from_session("provider", cookies, store) == "email"


def test_missing_key_raises(store):
    cookies = {}
    store_in_session("provider", "email", cookies, store)
    with pytest.raises(SessionError, match="session could not be found for this request"):
        get_from_session("other", cookies, store)


def test_missing_cookie_raises(store):
    with pytest.raises(SessionError, match="session could not be found for this request"):
        get_from_session("provider", {}, store)


def test_default_store_is_shared_and_usable():
    assert default_store() is default_store()
    cookies = {}
    store_in_session("provider", "email", cookies)
    assert get_from_session("provider", cookies) == "email"