"""Errors raised when a stored record cannot be found."""

from __future__ import annotations


class NotFoundError(Exception):
    """Base class of every "not found" error."""

    default_message = "Not found"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class UserNotFoundError(NotFoundError):
    """A user is not found."""

    default_message = "User not found"


class IdentityNotFoundError(NotFoundError):
    """An identity is not found."""

    default_message = "Identity not found"


class ConfirmationTokenNotFoundError(NotFoundError):
    """A confirmation token is not found."""

    default_message = "Confirmation Token not found"


class RefreshTokenNotFoundError(NotFoundError):
    """A refresh token is not found."""

    default_message = "Refresh Token not found"


class InstanceNotFoundError(NotFoundError):
    """An instance is not found."""

    default_message = "Instance not found"


class TotpSecretNotFoundError(NotFoundError):
    """A TOTP secret is not found."""

    default_message = "Totp Secret not found"


def is_not_found_error(err: BaseException | None) -> bool:
    """Return whether an error represents a "not found" error."""
    return isinstance(err, NotFoundError)