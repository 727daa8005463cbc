from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from app.core.config import Settings
from app.services.captcha import CaptchaVerificationError, CaptchaVerifier

VERIFY_URL = "https://captcha.test/siteverify"


def build_verifier(handler) -> CaptchaVerifier:
    return CaptchaVerifier(
        secret="s3cret",
        verify_url=VERIFY_URL,
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


def test_verify_posts_form_and_reads_success():
    """The verifier posts secret, token and client IP as form data."""
    seen: dict[str, list[str]] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(parse_qs(request.content.decode()))
        assert str(request.url) == VERIFY_URL
        return httpx.Response(200, json={"success": True})

    with build_verifier(handler) as verifier:
        result = verifier.verify("token-123", remote_ip="10.0.0.1")

    assert result.success is True
    assert seen == {"secret": ["s3cret"], "response": ["token-123"], "remoteip": ["10.0.0.1"]}


def test_verify_reports_rejection_codes():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200, json={"success": False, "error-codes": ["timeout-or-duplicate"]}
        )

    result = build_verifier(handler).verify("token")

    assert result.success is False
    assert result.error_codes == ("timeout-or-duplicate",)


def test_missing_token_skips_network():
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("no request expected")

    result = build_verifier(handler).verify("  ")

    assert result.success is False
    assert result.error_codes == ("missing-input-response",)


@pytest.mark.parametrize(
    "handler",
    [
        lambda request: httpx.Response(503, text="unavailable"),
        lambda request: httpx.Response(200, text="not json"),
        lambda request: httpx.Response(200, json=["unexpected"]),
    ],
)
def test_unusable_responses_raise(handler):
    with pytest.raises(CaptchaVerificationError):
        build_verifier(handler).verify("token")


def test_timeouts_raise():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(CaptchaVerificationError):
        build_verifier(handler).verify("token")


def test_from_settings_requires_secret():
    assert CaptchaVerifier.from_settings(Settings(_env_file=None, recaptcha_secret=None)) is None

    verifier = CaptchaVerifier.from_settings(
        Settings(_env_file=None, recaptcha_secret="abc", captcha_timeout_seconds=2.5)
    )
    assert verifier is not None
    assert verifier.secret == "abc"
    assert verifier.timeout == 2.5
    assert verifier.verify_url == "https://www.google.com/recaptcha/api/siteverify"
    verifier.close()
