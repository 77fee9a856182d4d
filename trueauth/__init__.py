"""User, identity and audit-log storage, cookie sessions and captcha checks for an authentication service."""

__version__ = "0.1.0"