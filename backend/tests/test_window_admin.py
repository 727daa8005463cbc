from __future__ import annotations

import json

import httpx
import pytest

from scripts import window_admin


@pytest.fixture(autouse=True)
def admin_settings(test_settings, monkeypatch):
    monkeypatch.setattr(window_admin, "get_settings", lambda: test_settings)
    return test_settings


def test_open_sends_admin_key_and_seconds(capsys):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, json={"ok": True, "opened_for": 90, "expires_at": "2025-01-01T18:01:30Z"}
        )

    exit_code = window_admin.main(
        ["--url", "http://claims.test", "open", "--seconds", "90"],
        transport=httpx.MockTransport(handler),
    )

    assert exit_code == 0
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/admin/open"
    assert seen[0].url.params["seconds"] == "90"
    assert seen[0].headers["x-admin-key"] == "letmein"
    assert json.loads(capsys.readouterr().out)["opened_for"] == 90


def test_claims_listing_passes_limit(capsys):
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/admin/claims"
        assert request.url.params["limit"] == "5"
        return httpx.Response(200, json=[])

    exit_code = window_admin.main(
        ["--url", "http://claims.test", "claims", "--limit", "5"],
        transport=httpx.MockTransport(handler),
    )

    assert exit_code == 0
    assert json.loads(capsys.readouterr().out) == []


def test_rejected_request_returns_error_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"ok": False, "msg": "unauthorized"})

    exit_code = window_admin.main(
        ["--url", "http://claims.test", "--admin-key", "wrong", "close"],
        transport=httpx.MockTransport(handler),
    )

    assert exit_code == 1
