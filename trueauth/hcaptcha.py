"""Verification of hCaptcha tokens sent along with a request."""

from __future__ import annotations

import json
import logging
from enum import IntEnum

import requests

VERIFY_URL = "https://hcaptcha.com/siteverify"
META_SECURITY_FIELD = "trueauth_meta_security"
TOKEN_FIELD = "hcaptcha_token"
TIMEOUT_SECONDS = 10

logger = logging.getLogger(__name__)


class VerificationResult(IntEnum):
    USER_REQUEST_FAILED = 0
    VERIFICATION_PROCESS_FAILURE = 1
    SUCCESSFULLY_VERIFIED = 2


class CaptchaVerificationError(Exception):
    """Captcha verification did not succeed; ``result`` says why."""

    def __init__(self, result: VerificationResult, message: str) -> None:
        super().__init__(message)
        self.result = result


def verify_request(body: bytes | str, remote_addr: str, secret_key: str) -> VerificationResult:
    """Verify the captcha token carried in a JSON request body."""
    try:
        document = json.loads(body)
        token = document[META_SECURITY_FIELD][TOKEN_FIELD]
    except (ValueError, TypeError, KeyError) as exc:
        raise CaptchaVerificationError(
            VerificationResult.USER_REQUEST_FAILED, f"couldn't decode captcha info: {exc}"
        ) from exc
    if not isinstance(token, str) or not token.strip():
        raise CaptchaVerificationError(
            VerificationResult.USER_REQUEST_FAILED, "couldn't decode captcha info"
        )
    client_ip = remote_addr.split(":")[0]
    return verify_captcha_code(token, secret_key, client_ip)


def verify_captcha_code(token: str, secret_key: str, client_ip: str) -> VerificationResult:
    """Ask the hCaptcha service whether ``token`` is valid."""
    data = {"secret": secret_key, "response": token, "remoteip": client_ip}
    try:
        response = requests.post(VERIFY_URL, data=data, timeout=TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        raise CaptchaVerificationError(
            VerificationResult.VERIFICATION_PROCESS_FAILURE,
            f"failed to verify hcaptcha token: {exc}",
        ) from exc
    try:
        result = response.json()
        if not isinstance(result, dict):
            raise ValueError("response is not a JSON object")
    except ValueError as exc:
        raise CaptchaVerificationError(
            VerificationResult.VERIFICATION_PROCESS_FAILURE,
            f"failed to decode hcaptcha response: {exc}",
        ) from exc

    logger.info("obtained hcaptcha verification result: %s", result)
    if not result.get("success"):
        raise CaptchaVerificationError(
            VerificationResult.USER_REQUEST_FAILED, "user request suppressed by hcaptcha"
        )
    return VerificationResult.SUCCESSFULLY_VERIFIED