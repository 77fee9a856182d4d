"""Registered users with e-mail or phone and password authentication."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, ClassVar

import bcrypt

from trueauth.errors import (
    ConfirmationTokenNotFoundError,
    NotFoundError,
    UserNotFoundError,
)
from trueauth.identity import Identity, find_identities_by_user, find_providers_by_user
from trueauth.json_map import json_map_from_db, json_map_to_db
from trueauth.nullstring import null_string_from_db, null_string_to_db
from trueauth.pagination import Pagination, SortParams
from trueauth.storage import Connection, StorageError, db_columns

SYSTEM_USER_ID = "0"
SYSTEM_USER_UUID = uuid.UUID(int=0)
DEFAULT_COST = 10


def _parse_uuid(value: Any) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))


def _parse_time(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_bool(value: Any) -> bool:
    return bool(value)


def _parse_int(value: Any) -> int:
    return int(value or 0)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_zero(moment: datetime | None) -> bool:
    return moment is not None and moment.replace(tzinfo=None) == datetime.min


def _time_field() -> Any:
    return field(default=None, metadata={"from_db": _parse_time})


def _null_string_field(column: str) -> Any:
    return field(
        default="",
        metadata={"db": column, "to_db": null_string_to_db, "from_db": null_string_from_db},
    )


def _json_field(column: str) -> Any:
    return field(
        default=None,
        metadata={"db": column, "to_db": json_map_to_db, "from_db": json_map_from_db},
    )


def _hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=DEFAULT_COST)).decode()


def _merge_updates(current: dict[str, Any] | None, updates: dict[str, Any] | None) -> dict[str, Any] | None:
    if current is None:
        return updates
    if updates is not None:
        for key, value in updates.items():
            if value is not None:
                current[key] = value
            else:
                current.pop(key, None)
    return current


@dataclass
class User:
    """A registered user."""

    table_name: ClassVar[str] = "users"

    instance_id: uuid.UUID = field(metadata={"from_db": _parse_uuid})
    id: uuid.UUID = field(metadata={"from_db": _parse_uuid})

    aud: str = ""
    role: str = ""
    email: str = _null_string_field("email")
    encrypted_password: str = ""
    email_confirmed_at: datetime | None = _time_field()
    invited_at: datetime | None = _time_field()

    phone: str = _null_string_field("phone")
    phone_confirmed_at: datetime | None = _time_field()

    confirmation_token: str = ""
    confirmation_sent_at: datetime | None = _time_field()

    # Kept for backward compatibility; read only.
    confirmed_at: datetime | None = field(default=None, metadata={"from_db": _parse_time, "rw": "r"})

    recovery_token: str = ""
    recovery_sent_at: datetime | None = _time_field()

    email_change_token_current: str = ""
    email_change_token_new: str = ""
    email_change: str = ""
    email_change_sent_at: datetime | None = _time_field()
    email_change_confirm_status: int = field(default=0, metadata={"from_db": _parse_int})

    phone_change_token: str = ""
    phone_change: str = ""
    phone_change_sent_at: datetime | None = _time_field()

    last_sign_in_at: datetime | None = _time_field()

    app_meta_data: dict[str, Any] | None = _json_field("raw_app_meta_data")
    user_meta_data: dict[str, Any] | None = _json_field("raw_user_meta_data")

    is_super_admin: bool = field(default=False, metadata={"from_db": _parse_bool})
    identities: list[Identity] = field(default_factory=list, metadata={"has_many": "identities"})

    created_at: datetime | None = _time_field()
    updated_at: datetime | None = _time_field()
    banned_until: datetime | None = _time_field()

    def before_create(self) -> None:
        self.before_update()

    def before_update(self) -> None:
        if self.id == SYSTEM_USER_UUID:
            raise ValueError("Cannot persist system user")

    def before_save(self) -> None:
        if self.id == SYSTEM_USER_UUID:
            raise ValueError("Cannot persist system user")
        for name in (
            "email_confirmed_at",
            "phone_confirmed_at",
            "invited_at",
            "confirmation_sent_at",
            "recovery_sent_at",
            "email_change_sent_at",
            "phone_change_sent_at",
            "last_sign_in_at",
            "banned_until",
        ):
            if _is_zero(getattr(self, name)):
                setattr(self, name, None)

    def is_confirmed(self) -> bool:
        return self.email_confirmed_at is not None

    def is_phone_confirmed(self) -> bool:
        return self.phone_confirmed_at is not None

    def set_role(self, conn: Connection, role_name: str) -> None:
        self.role = role_name.strip()
        conn.update_only(self, "role")

    def has_role(self, role_name: str) -> bool:
        return self.role == role_name

    def update_user_meta_data(self, conn: Connection, updates: dict[str, Any] | None) -> None:
        """Merge ``updates`` into the user data; a None value removes its key."""
        self.user_meta_data = _merge_updates(self.user_meta_data, updates)
        conn.update_only(self, "raw_user_meta_data")

    def update_app_meta_data(self, conn: Connection, updates: dict[str, Any] | None) -> None:
        """Merge ``updates`` into the app data; a None value removes its key."""
        self.app_meta_data = _merge_updates(self.app_meta_data, updates)
        conn.update_only(self, "raw_app_meta_data")

    def update_app_meta_data_providers(self, conn: Connection) -> None:
        """Store the providers of the user's identities in the app data."""
        providers = find_providers_by_user(conn, self)
        self.update_app_meta_data(conn, {"providers": providers})

    def set_email(self, conn: Connection, email: str) -> None:
        self.email = email
        conn.update_only(self, "email")

    def set_phone(self, conn: Connection, phone: str) -> None:
        self.phone = phone
        conn.update_only(self, "phone")

    def update_password(self, conn: Connection, password: str) -> None:
        self.encrypted_password = _hash_password(password)
        conn.update_only(self, "encrypted_password")

    def update_phone(self, conn: Connection, phone: str) -> None:
        self.phone = phone
        conn.update_only(self, "phone")

    def authenticate(self, password: str) -> bool:
        """Return whether ``password`` matches the stored hash."""
        if not self.encrypted_password:
            return False
        try:
            return bcrypt.checkpw(password.encode("utf-8"), self.encrypted_password.encode("utf-8"))
        except ValueError:
            return False

    def confirm(self, conn: Connection) -> None:
        self.confirmation_token = ""
        self.email_confirmed_at = _now()
        conn.update_only(self, "confirmation_token", "email_confirmed_at")

    def confirm_phone(self, conn: Connection) -> None:
        self.confirmation_token = ""
        self.phone_confirmed_at = _now()
        conn.update_only(self, "confirmation_token", "phone_confirmed_at")

    def update_last_sign_in_at(self, conn: Connection) -> None:
        conn.update_only(self, "last_sign_in_at")

    def confirm_email_change(self, conn: Connection, status: int) -> None:
        self.email = self.email_change
        self.email_change = ""
        self.email_change_token_current = ""
        self.email_change_token_new = ""
        self.email_change_confirm_status = status
        conn.update_only(
            self,
            "email",
            "email_change",
            "email_change_token_current",
            "email_change_token_new",
            "email_change_confirm_status",
        )

    def confirm_phone_change(self, conn: Connection) -> None:
        self.phone = self.phone_change
        self.phone_change = ""
        self.phone_change_token = ""
        self.phone_confirmed_at = _now()
        conn.update_only(self, "phone", "phone_change", "phone_change_token", "phone_confirmed_at")

    def recover(self, conn: Connection) -> None:
        self.recovery_token = ""
        conn.update_only(self, "recovery_token")

    def is_banned(self) -> bool:
        if self.banned_until is None:
            return False
        until = self.banned_until
        if until.tzinfo is None:
            until = until.replace(tzinfo=timezone.utc)
        return _now() < until

    def update_banned_until(self, conn: Connection) -> None:
        conn.update_only(self, "banned_until")


def new_user(
    instance_id: uuid.UUID,
    email: str,
    password: str,
    aud: str,
    user_data: dict[str, Any] | None = None,
) -> User:
    """Build a new user with a hashed password and a lower-cased e-mail."""
    return User(
        instance_id=instance_id,
        id=uuid.uuid4(),
        aud=aud,
        email=email.lower(),
        user_meta_data=user_data if user_data is not None else {},
        encrypted_password=_hash_password(password),
    )


def new_system_user(instance_id: uuid.UUID, aud: str) -> User:
    """Build the in-memory system user, which can never be stored."""
    return User(instance_id=instance_id, id=SYSTEM_USER_UUID, aud=aud, is_super_admin=True)


def count_other_users(conn: Connection, instance_id: uuid.UUID, user_id: uuid.UUID) -> int:
    """Count the users of an instance other than ``user_id``."""
    try:
        return conn.count(User, "instance_id = ? and id != ?", instance_id, user_id)
    except StorageError as exc:
        raise StorageError(f"error finding registered users: {exc}") from exc


def _find_user(conn: Connection, where: str, *args: Any) -> User:
    try:
        user = conn.fetch_one(User, where, *args)
        if user is not None:
            user.identities = find_identities_by_user(conn, user)
    except StorageError as exc:
        raise StorageError(f"error finding user: {exc}") from exc
    if user is None:
        raise UserNotFoundError()
    return user


def find_user_by_confirmation_token(conn: Connection, token: str) -> User:
    try:
        return _find_user(conn, "confirmation_token = ?", token)
    except (UserNotFoundError, StorageError) as exc:
        raise ConfirmationTokenNotFoundError() from exc


def find_user_by_email_and_audience(conn: Connection, instance_id: uuid.UUID, email: str, aud: str) -> User:
    return _find_user(
        conn, "instance_id = ? and LOWER(email) = ? and aud = ?", instance_id, email.lower(), aud
    )


def find_user_by_phone_and_audience(conn: Connection, instance_id: uuid.UUID, phone: str, aud: str) -> User:
    return _find_user(conn, "instance_id = ? and phone = ? and aud = ?", instance_id, phone, aud)


def find_user_by_id(conn: Connection, user_id: uuid.UUID) -> User:
    return _find_user(conn, "id = ?", user_id)


def find_user_by_instance_id_and_id(conn: Connection, instance_id: uuid.UUID, user_id: uuid.UUID) -> User:
    return _find_user(conn, "instance_id = ? and id = ?", instance_id, user_id)


def find_user_by_recovery_token(conn: Connection, token: str) -> User:
    return _find_user(conn, "recovery_token = ?", token)


def find_user_by_email_change_token(conn: Connection, token: str) -> User:
    return _find_user(
        conn, "email_change_token_current = ? or email_change_token_new = ?", token, token
    )


def find_users_in_audience(
    conn: Connection,
    instance_id: uuid.UUID,
    aud: str,
    pagination: Pagination | None = None,
    sort_params: SortParams | None = None,
    filter_text: str = "",
) -> list[User]:
    """List an instance's users in an audience, optionally filtered, sorted and paged."""
    where = "instance_id = ? and aud = ?"
    args: list[Any] = [instance_id, aud]

    if filter_text:
        pattern = f"%{filter_text}%"
        where += " and (email LIKE ? OR json_extract(raw_user_meta_data, '$.full_name') LIKE ?)"
        args += [pattern, pattern]

    order = None
    if sort_params is not None and sort_params.fields:
        columns = db_columns(User)
        parts = []
        for sort_field in sort_params.fields:
            if sort_field.name not in columns:
                raise StorageError(f"Invalid column name {sort_field.name}")
            parts.append(f'"{sort_field.name}" {sort_field.direction.value}')
        order = ", ".join(parts)

    return conn.fetch_all(User, where, *args, order=order, pagination=pagination)


def find_user_with_phone_and_phone_change_token(conn: Connection, phone: str, token: str) -> User:
    return _find_user(conn, "phone = ? and phone_change_token = ?", phone, token)


def is_duplicated_email(conn: Connection, instance_id: uuid.UUID, email: str, aud: str) -> bool:
    """Return whether a user with this e-mail exists in the audience."""
    try:
        find_user_by_email_and_audience(conn, instance_id, email, aud)
    except NotFoundError:
        return False
    return True


def is_duplicated_phone(conn: Connection, instance_id: uuid.UUID, phone: str, aud: str) -> bool:
    """Return whether a user with this phone number exists in the audience."""
    try:
        find_user_by_phone_and_audience(conn, instance_id, phone, aud)
    except NotFoundError:
        return False
    return True