"""Identities linking a user to an external authentication provider."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

from trueauth.errors import IdentityNotFoundError
from trueauth.json_map import json_map_from_db, json_map_to_db
from trueauth.storage import Connection, StorageError


def _parse_uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _parse_time(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


@dataclass
class Identity:
    """One provider account belonging to a user."""

    table_name: ClassVar[str] = "identities"

    id: str
    user_id: uuid.UUID = field(metadata={"from_db": _parse_uuid})
    identity_data: dict[str, Any] = field(
        default_factory=dict,
        metadata={"to_db": json_map_to_db, "from_db": json_map_from_db},
    )
    provider: str = ""
    last_sign_in_at: datetime | None = field(default=None, metadata={"from_db": _parse_time})
    created_at: datetime | None = field(default=None, metadata={"from_db": _parse_time})
    updated_at: datetime | None = field(default=None, metadata={"from_db": _parse_time})


def new_identity(user: Any, provider: str, identity_data: dict[str, Any]) -> Identity:
    """Build an identity for ``user``; the provider's account id is ``identity_data["sub"]``."""
    if "sub" not in identity_data:
        raise ValueError("Error missing provider id")
    provider_id = identity_data["sub"]
    if not isinstance(provider_id, str):
        raise ValueError("provider id must be a string")
    return Identity(
        id=provider_id,
        user_id=user.id,
        identity_data=identity_data,
        provider=provider,
        last_sign_in_at=datetime.now(timezone.utc),
    )


def find_identity_by_id_and_provider(conn: Connection, provider_id: str, provider: str) -> Identity:
    """Find the identity with the given provider account id and provider."""
    try:
        identity = conn.fetch_one(Identity, "id = ? AND provider = ?", provider_id, provider)
    except StorageError as exc:
        raise StorageError(f"error finding identity: {exc}") from exc
    if identity is None:
        raise IdentityNotFoundError()
    return identity


def find_identities_by_user(conn: Connection, user: Any) -> list[Identity]:
    """Return every identity of ``user``."""
    try:
        return conn.fetch_all(Identity, "user_id = ?", user.id)
    except StorageError as exc:
        raise StorageError(f"error finding identities: {exc}") from exc


def find_providers_by_user(conn: Connection, user: Any) -> list[str]:
    """Return the provider of each identity of ``user``."""
    try:
        identities = conn.fetch_all(Identity, "user_id = ?", user.id)
    except StorageError as exc:
        raise StorageError(f"error finding providers: {exc}") from exc
    return [identity.provider for identity in identities]