import uuid
from datetime import datetime
from types import SimpleNamespace

import pytest

from trueauth.audit_log import AuditAction, AuditLogEntry, find_audit_log_entries, new_audit_log_entry
from trueauth.pagination import Pagination
from trueauth.storage import dial


@pytest.fixture
def conn():
    connection = dial("sqlite://")
    connection.create_table(AuditLogEntry)
    yield connection
    connection.close()


def _actor(email="actor@example.com", phone="", meta=None):
    return SimpleNamespace(id=uuid.uuid4(), email=email, phone=phone, user_meta_data=meta or {})


INSTANCE = uuid.UUID(int=0)


def test_table_name(conn):
    rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
    assert [row[0] for row in rows] == ["audit_log_entries"]


def test_new_entry_payload(conn):
    actor = _actor()
    entry = new_audit_log_entry(conn, INSTANCE, actor, AuditAction.LOGIN, None)
    assert entry.payload["actor_id"] == str(actor.id)
    assert entry.payload["actor_username"] == "actor@example.com"
    assert entry.payload["action"] == "login"
    assert entry.payload["log_type"] == "account"
    assert "actor_name" not in entry.payload
    assert "traits" not in entry.payload
    datetime.strptime(entry.payload["timestamp"], "%Y-%m-%dT%H:%M:%SZ")


def test_phone_overrides_email_and_name_and_traits(conn):
    actor = _actor(phone="phone", meta={"full_name": "Jane Doe"})
    entry = new_audit_log_entry(
        conn, INSTANCE, actor, AuditAction.TOKEN_REVOKED, {"provider": "email"}
    )
    assert entry.payload["actor_username"] == "phone"
    assert entry.payload["actor_name"] == "Jane Doe"
    assert entry.payload["traits"] == {"provider": "email"}
    assert entry.payload["log_type"] == "token"


@pytest.mark.parametrize(
    "action, log_type",
    [
        (AuditAction.USER_SIGNED_UP, "team"),
        (AuditAction.USER_INVITED, "team"),
        (AuditAction.USER_MODIFIED, "user"),
        (AuditAction.USER_REPEATED_SIGN_UP, "user"),
        (AuditAction.LOGOUT, "account"),
    ],
)
def test_log_type_of_action(conn, action, log_type):
    entry = new_audit_log_entry(conn, INSTANCE, _actor(), action, None)
    assert entry.payload["log_type"] == log_type


def test_unknown_action_rejected(conn):
    with pytest.raises(ValueError):
        new_audit_log_entry(conn, INSTANCE, _actor(), "no_such_action", None)


def test_entries_round_trip_and_instance_filter(conn):
    entry = new_audit_log_entry(conn, INSTANCE, _actor(), AuditAction.LOGIN, None)
    new_audit_log_entry(conn, uuid.uuid4(), _actor(), AuditAction.LOGIN, None)
    found = find_audit_log_entries(conn, INSTANCE, [], "", None)
    assert len(found) == 1
    assert found[0].id == entry.id
    assert found[0].instance_id == INSTANCE
    assert found[0].payload == entry.payload


def test_filter_on_payload_columns(conn):
    new_audit_log_entry(conn, INSTANCE, _actor(email="alice@example.com"), AuditAction.LOGIN, None)
    new_audit_log_entry(conn, INSTANCE, _actor(email="bob@example.com"), AuditAction.LOGOUT, None)
    found = find_audit_log_entries(conn, INSTANCE, ["actor_username"], "ALICE", None)
    assert [e.payload["actor_username"] for e in found] == ["alice@example.com"]
    found = find_audit_log_entries(conn, INSTANCE, ["actor_username", "action"], "logout", None)
    assert [e.payload["action"] for e in found] == ["logout"]


def test_pagination_sets_count(conn):
    for _ in range(3):
        new_audit_log_entry(conn, INSTANCE, _actor(), AuditAction.LOGIN, None)
    page = Pagination(page=1, per_page=2)
    found = find_audit_log_entries(conn, INSTANCE, None, "", page)
    assert len(found) == 2
    assert page.count == 3