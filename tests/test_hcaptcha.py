import json
from urllib.parse import parse_qs

import pytest
import requests
import responses

from trueauth.hcaptcha import (
    META_SECURITY_FIELD,
    VERIFY_URL,
    CaptchaVerificationError,
    VerificationResult,
    verify_captcha_code,
    verify_request,
)


def _body(token):
    return json.dumps({META_SECURITY_FIELD: {"hcaptcha_token": token}, "email": "user@example.com"})


def test_verify_captcha_code_success_sends_form():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, VERIFY_URL, json={"success": True, "hostname": "localhost"})
        result = verify_captcha_code("token", "secret", "127.0.0.1")
        sent = parse_qs(rsps.calls[0].request.body)
    assert result is VerificationResult.SUCCESSFULLY_VERIFIED
    assert sent == {"secret": ["secret"], "response": ["token"], "remoteip": ["127.0.0.1"]}


def test_verify_captcha_code_rejected():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, VERIFY_URL, json={"success": False, "error-codes": ["invalid-input-response"]})
        with pytest.raises(CaptchaVerificationError) as info:
            verify_captcha_code("token", "secret", "127.0.0.1")
    assert info.value.result is VerificationResult.USER_REQUEST_FAILED
    assert str(info.value) == "user request suppressed by hcaptcha"


def test_verify_captcha_code_network_failure():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, VERIFY_URL, body=requests.ConnectionError("down"))
        with pytest.raises(CaptchaVerificationError) as info:
            verify_captcha_code("token", "secret", "127.0.0.1")
    assert info.value.result is VerificationResult.VERIFICATION_PROCESS_FAILURE


def test_verify_captcha_code_undecodable_response():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, VERIFY_URL, body="not json")
        with pytest.raises(CaptchaVerificationError) as info:
            verify_captcha_code("token", "secret", "127.0.0.1")
    assert info.value.result is VerificationResult.VERIFICATION_PROCESS_FAILURE


def test_verify_request_strips_port_from_remote_address():
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, VERIFY_URL, json={"success": True})
        result = verify_request(_body("token"), "203.0.113.5:4000", "secret")
        sent = parse_qs(rsps.calls[0].request.body)
    assert result is VerificationResult.SUCCESSFULLY_VERIFIED
    assert sent["remoteip"] == ["203.0.113.5"]
    assert sent["response"] == ["token"]


@pytest.mark.parametrize(
    "body",
    [
        "not json",
        json.dumps({"email": "user@example.com"}),
        json.dumps({META_SECURITY_FIELD: {}}),
    ],
)
def test_verify_request_without_token(body):
    with pytest.raises(CaptchaVerificationError) as info:
        verify_request(body, "127.0.0.1:80", "secret")
    assert info.value.result is VerificationResult.USER_REQUEST_FAILED


def test_verify_request_blank_token():
    with pytest.raises(CaptchaVerificationError) as info:
        verify_request(_body("   "), "127.0.0.1:80", "secret")
    assert info.value.result is VerificationResult.USER_REQUEST_FAILED


def test_verification_result_values():
    with pytest.raises(CaptchaVerificationError) as info:
        verify_request("not json", "127.0.0.1:80", "secret")
    assert info.value.result.value == 0

    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, VERIFY_URL, body="not json")
        with pytest.raises(CaptchaVerificationError) as failure:
            verify_captcha_code("token", "secret", "127.0.0.1")
    assert failure.value.result.value == 1

    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, VERIFY_URL, json={"success": True})
        result = verify_captcha_code("token", "secret", "127.0.0.1")
    assert result.value == 2