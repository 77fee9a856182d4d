# trueauth

Storage models for an authentication service: users with bcrypt-hashed
passwords, links to external identity providers, and audit log entries.
The package also provides signed cookie sessions and hCaptcha token
verification.

## Installation

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Storage

`trueauth.storage.dial(url, max_pool_size)` opens a `Connection`. The URL
scheme picks the driver; `sqlite` and `sqlite3` are supported, for example
`sqlite:///:memory:` or `sqlite:///path/to/file.db`. Any other scheme raises
`StorageError`.

A model is a dataclass with a `table_name` class attribute. Its fields map
to columns; field metadata can rename a column (`db`), leave it out
(`db: "-"` or `has_many`), convert values (`to_db`, `from_db`) or mark it as
read only (`rw: "r"`).

- `create_table(model_cls)` creates a model's table if it does not exist.
- `create`, `update` and `update_only` write records. `update_only` writes
  just the columns named; an unknown column name raises `StorageError`.
  `create` and `update` call a model's `before_save`, `before_create` and
  `before_update` hooks when it has them, and set `created_at` /
  `updated_at` columns.
- `fetch_one`, `fetch_all` and `count` read records with a `WHERE` clause
  using `?` parameters. `fetch_all` takes an `order` clause and a
  `trueauth.pagination.Pagination`, whose `count` is then set to the total
  number of matching rows.
- `execute(sql, *args)` runs a raw statement.
- `transaction()` is a context manager: the block is committed at its end or
  rolled back if it raises. A nested block joins the outer transaction.

`db_columns(model)` and `excluded_columns(model, *names)` list a model's
stored columns.

## Users

```python
from uuid import UUID

from trueauth.identity import Identity
from trueauth.storage import dial
from trueauth.user import User, new_user, find_user_by_email_and_audience

conn = dial("sqlite:///:memory:", 1)
conn.create_table(User)
conn.create_table(Identity)

password = "password"
user = new_user(UUID(int=0), "someone@example.com", password, "authenticated", None)
conn.create(user)

found = find_user_by_email_and_audience(conn, UUID(int=0), "someone@example.com", "authenticated")
assert found.authenticate(password)
```

Lookups load the user's identities too, so the `identities` table must exist.

- `new_user` lower-cases the e-mail address and hashes the password.
- `User.update_user_meta_data` and `User.update_app_meta_data` merge the
  given keys into the existing metadata; a key whose value is `None` is
  removed. `update_app_meta_data_providers` stores the providers of the
  user's identities under `"providers"`.
- `confirm`, `confirm_phone`, `confirm_email_change`, `confirm_phone_change`
  and `recover` clear the matching tokens and save the changed columns.
- `is_banned` is true while `banned_until` lies in the future.
- `new_system_user` builds the in-memory super-admin user; saving it raises
  `ValueError`.
- `find_users_in_audience` filters on e-mail or `full_name`, sorts by
  `trueauth.pagination.SortParams` and pages with `Pagination`.
- `is_duplicated_email` and `is_duplicated_phone` report whether a user
  already exists in an audience; `count_other_users` counts the rest.

Lookups that find nothing raise the matching subclass of
`trueauth.errors.NotFoundError`, such as `UserNotFoundError` or
`ConfirmationTokenNotFoundError`. `is_not_found_error` checks for any of
them.

## Identities and audit log

`trueauth.identity.new_identity(user, provider, identity_data)` links a user
to an external provider; `identity_data` must hold a string `"sub"` key, or
`ValueError` is raised. `find_identity_by_id_and_provider`,
`find_identities_by_user` and `find_providers_by_user` read them back.

`trueauth.audit_log.new_audit_log_entry` records an `AuditAction` for an
actor, with a timestamp, the actor's id, e-mail or phone, full name if set,
and optional traits. `find_audit_log_entries` lists an instance's entries
newest first, can search the payload fields you name, and can be paged with
`Pagination`.

## Sessions

`trueauth.session.CookieSessionStore` signs session values into a
timestamped cookie value with HMAC-SHA256 (`save`) and verifies it
(`load`), raising `SessionError` on a bad or expired cookie.
`store_in_session(key, value, cookies)` and `get_from_session(key, cookies)`
read and write one key in a cookie mapping. `default_store()` uses the key in
the `TRUEAUTH_SESSION_KEY` environment variable, or a random key if that is
not set.

## Captcha

`trueauth.hcaptcha.verify_request(body, remote_addr, secret_key)` reads the
`trueauth_meta_security.hcaptcha_token` field from a JSON request body and
asks hCaptcha to check it with `verify_captcha_code`. It returns
`VerificationResult.SUCCESSFULLY_VERIFIED` when the token is accepted;
otherwise it raises `CaptchaVerificationError`, whose `result` holds the
failing `VerificationResult`.

## What the package does not do

It has no HTTP API, server or command line, and no refresh-token or instance
models. Its storage layer works with SQLite only and creates tables with
`create_table` rather than migrations.