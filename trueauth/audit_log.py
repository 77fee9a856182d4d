"""Audit log of account, team, token and user actions."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar

from trueauth.json_map import json_map_from_db, json_map_to_db
from trueauth.pagination import Pagination
from trueauth.storage import Connection, StorageError


class AuditAction(str, Enum):
    LOGIN = "login"
    LOGOUT = "logout"
    INVITE_ACCEPTED = "invite_accepted"
    USER_SIGNED_UP = "user_signedup"
    USER_INVITED = "user_invited"
    USER_DELETED = "user_deleted"
    USER_MODIFIED = "user_modified"
    USER_RECOVERY_REQUESTED = "user_recovery_requested"
    USER_CONFIRMATION_REQUESTED = "user_confirmation_requested"
    USER_REPEATED_SIGN_UP = "user_repeated_signup"
    TOKEN_REVOKED = "token_revoked"
    TOKEN_REFRESHED = "token_refreshed"


_LOG_TYPES = {
    AuditAction.LOGIN: "account",
    AuditAction.LOGOUT: "account",
    AuditAction.INVITE_ACCEPTED: "account",
    AuditAction.USER_SIGNED_UP: "team",
    AuditAction.USER_INVITED: "team",
    AuditAction.USER_DELETED: "team",
    AuditAction.TOKEN_REVOKED: "token",
    AuditAction.TOKEN_REFRESHED: "token",
    AuditAction.USER_MODIFIED: "user",
    AuditAction.USER_RECOVERY_REQUESTED: "user",
    AuditAction.USER_CONFIRMATION_REQUESTED: "user",
    AuditAction.USER_REPEATED_SIGN_UP: "user",
}


def _parse_uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _parse_time(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class AuditLogEntry:
    """One stored audit log record."""

    table_name: ClassVar[str] = "audit_log_entries"

    instance_id: uuid.UUID = field(metadata={"from_db": _parse_uuid})
    id: uuid.UUID = field(metadata={"from_db": _parse_uuid})
    payload: dict[str, Any] = field(
        default_factory=dict,
        metadata={"to_db": json_map_to_db, "from_db": json_map_from_db},
    )
    created_at: datetime | None = field(default=None, metadata={"from_db": _parse_time})


def new_audit_log_entry(
    conn: Connection,
    instance_id: uuid.UUID,
    actor: Any,
    action: AuditAction | str,
    traits: dict[str, Any] | None = None,
) -> AuditLogEntry:
    """Record that ``actor`` performed ``action`` and return the stored entry."""
    action = AuditAction(action)
    username = actor.email or ""
    if actor.phone:
        username = actor.phone

    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "actor_id": str(actor.id),
        "actor_username": username,
        "action": action.value,
        "log_type": _LOG_TYPES[action],
    }
    user_meta_data = actor.user_meta_data or {}
    if "full_name" in user_meta_data:
        payload["actor_name"] = user_meta_data["full_name"]
    if traits is not None:
        payload["traits"] = traits

    entry = AuditLogEntry(instance_id=instance_id, id=uuid.uuid4(), payload=payload)
    try:
        conn.create(entry)
    except StorageError as exc:
        raise StorageError(f"Database error creating audit log entry: {exc}") from exc
    return entry


def _json_path(column: str) -> str:
    return '$."' + column.replace('"', '\\"') + '"'


def find_audit_log_entries(
    conn: Connection,
    instance_id: uuid.UUID,
    filter_columns: list[str] | None = None,
    filter_value: str = "",
    pagination: Pagination | None = None,
) -> list[AuditLogEntry]:
    """List an instance's entries, newest first, optionally filtered on payload fields."""
    where = "instance_id = ?"
    args: list[Any] = [instance_id]

    if filter_columns and filter_value:
        pattern = f"%{filter_value}%"
        where += " AND (" + " OR ".join(
            "json_extract(payload, ?) LIKE ?" for _ in filter_columns
        ) + ")"
        for column in filter_columns:
            args += [_json_path(column), pattern]

    return conn.fetch_all(
        AuditLogEntry, where, *args, order="created_at desc", pagination=pagination
    )