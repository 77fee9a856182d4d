"""SQL storage for dataclass models.

A model is a dataclass with a ``table_name`` class attribute. Each field maps
to a column named by its ``db`` metadata (the field name when absent); a field
whose ``db`` is ``"-"`` or that carries ``has_many`` metadata is not stored.
``to_db`` and ``from_db`` metadata convert values on the way in and out, and
``rw: "r"`` marks a column that is read but never written.
"""

from __future__ import annotations

import dataclasses
import json
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from typing import Any, Iterator
from urllib.parse import urlsplit

from trueauth.pagination import Pagination

_SUPPORTED_DRIVERS = {"sqlite", "sqlite3"}
_DEFAULT_PER_PAGE = 20


class StorageError(Exception):
    """A database operation failed."""


def db_columns(model_cls: Any) -> dict[str, dataclasses.Field]:
    """Map each stored column name of a model (class or instance) to its field."""
    columns: dict[str, dataclasses.Field] = {}
    for f in dataclasses.fields(model_cls):
        if "has_many" in f.metadata:
            continue
        name = f.metadata.get("db", f.name)
        if name == "-":
            continue
        columns[name] = f
    return columns


def excluded_columns(model: Any, *include_columns: str) -> list[str]:
    """Return every column of ``model`` except the ones named."""
    columns = db_columns(model)
    for name in include_columns:
        if name not in columns:
            raise StorageError(f"Invalid column name {name}")
    return [name for name in columns if name not in include_columns]


def _table_name(model: Any) -> str:
    cls = model if isinstance(model, type) else type(model)
    return getattr(cls, "table_name", cls.__name__.lower())


def _to_db(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    if isinstance(value, bool):
        return int(value)
    return value


def _column_value(model: Any, f: dataclasses.Field) -> Any:
    value = getattr(model, f.name)
    convert = f.metadata.get("to_db")
    return convert(value) if convert else _to_db(value)


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _where(where: str | None) -> str:
    return f" WHERE {where}" if where else ""


def _run_hooks(model: Any, *names: str) -> None:
    for name in names:
        hook = getattr(model, name, None)
        if callable(hook):
            hook()


class Connection:
    """A database connection that stores and loads dataclass models."""

    def __init__(self, db: sqlite3.Connection, driver: str, max_pool_size: int = 0) -> None:
        self._db = db
        self._db.row_factory = sqlite3.Row
        self.driver = driver
        self.max_pool_size = max_pool_size
        self._in_transaction = False

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def execute(self, sql: str, *args: Any) -> sqlite3.Cursor:
        """Run a raw statement with positional ``?`` parameters."""
        try:
            return self._db.execute(sql, [_to_db(a) for a in args])
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc

    def create_table(self, model_cls: type) -> None:
        """Create the model's table if it does not exist yet."""
        defs = [
            f"{_quote(name)} PRIMARY KEY" if name == "id" else _quote(name)
            for name in db_columns(model_cls)
        ]
        self.execute(f"CREATE TABLE IF NOT EXISTS {_quote(_table_name(model_cls))} ({', '.join(defs)})")

    @contextmanager
    def transaction(self) -> Iterator["Connection"]:
        """Run the block in a transaction; nested blocks join the outer one."""
        if self._in_transaction:
            yield self
            return
        self.execute("BEGIN")
        self._in_transaction = True
        try:
            yield self
        except BaseException:
            self._in_transaction = False
            self.execute("ROLLBACK")
            raise
        self._in_transaction = False
        self.execute("COMMIT")

    def create(self, model: Any) -> None:
        """Insert a new row for ``model``."""
        _run_hooks(model, "before_save", "before_create")
        columns = db_columns(model)
        now = datetime.now(timezone.utc)
        if "created_at" in columns and getattr(model, columns["created_at"].name) is None:
            setattr(model, columns["created_at"].name, now)
        if "updated_at" in columns:
            setattr(model, columns["updated_at"].name, now)

        writable = {n: f for n, f in columns.items() if f.metadata.get("rw") != "r"}
        names = ", ".join(_quote(n) for n in writable)
        marks = ", ".join("?" for _ in writable)
        values = [_column_value(model, f) for f in writable.values()]
        self.execute(f"INSERT INTO {_quote(_table_name(model))} ({names}) VALUES ({marks})", *values)

    def update(self, model: Any, *exclude_columns: str) -> None:
        """Write every column of ``model`` except the excluded ones."""
        _run_hooks(model, "before_save", "before_update")
        columns = db_columns(model)
        if "id" not in columns:
            raise StorageError(f"model {type(model).__name__} has no id column")
        if "updated_at" in columns:
            setattr(model, columns["updated_at"].name, datetime.now(timezone.utc))

        skipped = {"id", "created_at", *exclude_columns}
        writable = {
            n: f for n, f in columns.items() if n not in skipped and f.metadata.get("rw") != "r"
        }
        if not writable:
            return
        assignments = ", ".join(f"{_quote(n)} = ?" for n in writable)
        values = [_column_value(model, f) for f in writable.values()]
        values.append(_column_value(model, columns["id"]))
        self.execute(f"UPDATE {_quote(_table_name(model))} SET {assignments} WHERE id = ?", *values)

    def update_only(self, model: Any, *include_columns: str) -> None:
        """Write only the named columns of ``model``."""
        self.update(model, *excluded_columns(model, *include_columns))

    def _select(self, model_cls: type) -> str:
        names = ", ".join(_quote(n) for n in db_columns(model_cls))
        return f"SELECT {names} FROM {_quote(_table_name(model_cls))}"

    @staticmethod
    def _from_row(model_cls: type, row: sqlite3.Row) -> Any:
        kwargs = {}
        for name, f in db_columns(model_cls).items():
            if not f.init:
                continue
            convert = f.metadata.get("from_db")
            kwargs[f.name] = convert(row[name]) if convert else row[name]
        return model_cls(**kwargs)

    def fetch_one(self, model_cls: type, where: str | None, *args: Any) -> Any | None:
        """Return the first matching model, or None when nothing matches."""
        row = self.execute(f"{self._select(model_cls)}{_where(where)} LIMIT 1", *args).fetchone()
        return None if row is None else self._from_row(model_cls, row)

    def fetch_all(
        self,
        model_cls: type,
        where: str | None,
        *args: Any,
        order: str | None = None,
        pagination: Pagination | None = None,
    ) -> list[Any]:
        """Return all matching models; with ``pagination``, one page and the total count."""
        sql = f"{self._select(model_cls)}{_where(where)}"
        if order:
            sql += f" ORDER BY {order}"
        params = list(args)
        if pagination is not None:
            page = max(pagination.page, 1)
            per_page = pagination.per_page if pagination.per_page > 0 else _DEFAULT_PER_PAGE
            pagination.count = self.count(model_cls, where, *args)
            sql += " LIMIT ? OFFSET ?"
            params += [per_page, (page - 1) * per_page]
        return [self._from_row(model_cls, row) for row in self.execute(sql, *params).fetchall()]

    def count(self, model_cls: type, where: str | None, *args: Any) -> int:
        """Count the matching rows."""
        sql = f"SELECT COUNT(*) FROM {_quote(_table_name(model_cls))}{_where(where)}"
        return int(self.execute(sql, *args).fetchone()[0])

    def close(self) -> None:
        self._db.close()


def dial(url: str, max_pool_size: int = 0) -> Connection:
    """Open a connection to the database named by ``url``; the scheme picks the driver."""
    parts = urlsplit(url)
    driver = parts.scheme
    if driver not in _SUPPORTED_DRIVERS:
        raise StorageError(f"opening database connection: unsupported driver {driver!r}")
    target = parts.netloc + parts.path
    if not target or target.lstrip("/") == ":memory:":
        target = ":memory:"
    try:
        db = sqlite3.connect(target, isolation_level=None, check_same_thread=False)
        db.execute("SELECT 1")
    except sqlite3.Error as exc:
        raise StorageError(f"checking database connection: {exc}") from exc
    return Connection(db, driver, max_pool_size)