"""Tests for the HTTP sidecar and the CLI."""

import io
import json
import sys
import threading
import urllib.error
import urllib.request
from http.server import HTTPServer

import pytest

from privacy_gate import cli
from privacy_gate.providers import (
    MODELS,
    Provider,
    UnknownModelError,
    default_model,
    get_model_config,
    models_by_provider,
)
from privacy_gate.server import PrivacyHandler


# ── Sidecar ──────────────────────────────────────────────────────────

@pytest.fixture()
def base_url():
    server = HTTPServer(("127.0.0.1", 0), PrivacyHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def _call(url, body=None):
    data = json.dumps(body).encode() if body is not None else None
    req = urllib.request.Request(url, data=data, headers={"Content-Type": "application/json"})
    try:
        with urllib.request.urlopen(req) as resp:
            return resp.status, json.loads(resp.read())
    except urllib.error.HTTPError as e:
        return e.code, json.loads(e.read())


def test_health(base_url):
    assert _call(base_url + "/health") == (200, {"status": "ok"})


def test_route(base_url):
    assert _call(base_url + "/route/sovereign") == (
        200, {"store": "local", "anonymize": True, "encrypt": True},
    )
    status, _ = _call(base_url + "/route/gold")
    assert status == 400


def test_sanitize_and_restore(base_url):
    status, body = _call(base_url + "/sanitize", {
        "tier": "private",
        "model": "claude-sonnet-4",
        "messages": [{"role": "user", "content": "Contact me at a@b.com or 555-123-4567"}],
    })
    assert status == 200
    assert body["messages"][0]["content"] == "Contact me at [EMAIL_1] or [PHONE_1]"
    assert body["detected_types"] == ["email", "phone"]
    assert body["route"] == {"store": "server", "anonymize": True, "poolCredentials": True}
    assert body["credential_pool_id"].startswith("pool-")
    assert body["provider"] == "anthropic"

    status, body = _call(base_url + "/restore", {
        "text": "I'll email [EMAIL_1] now",
        "placeholder_map": body["placeholder_map"],
    })
    assert (status, body) == (200, {"text": "I'll email a@b.com now"})


def test_sanitize_blocked(base_url):
    status, body = _call(base_url + "/sanitize", {
        "tier": "sovereign",
        "messages": [{"role": "user", "content": "SSN 123-45-6789"}],
    })
    assert status == 422
    assert body["error"] == "Message blocked"
    assert body["blockedTypes"] == ["ssn"]


def test_sanitize_bad_input(base_url):
    assert _call(base_url + "/sanitize", {"tier": "gold", "messages": []})[0] == 400
    assert _call(base_url + "/sanitize", {"tier": "private", "messages": "x"})[0] == 400
    assert _call(base_url + "/sanitize", {"tier": "private", "messages": [], "model": "gpt-9"})[0] == 400


def test_detect_returns_no_values(base_url):
    status, body = _call(base_url + "/detect", {"text": "mail a@b.com"})
    assert status == 200
    assert body == {"detections": [{"type": "email", "start": 5, "end": 12}]}


def test_not_found(base_url):
    assert _call(base_url + "/nope")[0] == 404
    assert _call(base_url + "/nope", {})[0] == 404


# ── Providers ────────────────────────────────────────────────────────

def test_model_registry():
    assert len(MODELS) == 9
    assert default_model().id == "claude-sonnet-4"
    assert get_model_config("gemini-2-flash").provider is Provider.GOOGLE
    with pytest.raises(UnknownModelError):
        get_model_config("gpt-9")
    groups = models_by_provider()
    assert set(groups) == set(Provider)
    assert [m.id for m in groups[Provider.ANTHROPIC]] == [
        "claude-opus-4", "claude-sonnet-4", "claude-haiku-3.5",
    ]
    assert Provider.GOOGLE.api_key_env == "GOOGLE_AI_API_KEY"


def test_every_provider_has_env_var_and_display_name():
    for provider in Provider:
        assert provider.api_key_env.endswith("_API_KEY")
        assert provider.display_name


# ── CLI ──────────────────────────────────────────────────────────────

def _run_cli(monkeypatch, capsys, argv, stdin=""):
    monkeypatch.setattr(sys, "stdin", io.StringIO(stdin))
    code = cli.main(argv)
    return code, capsys.readouterr()


def test_cli_sanitize(monkeypatch, capsys):
    code, out = _run_cli(monkeypatch, capsys, ["sanitize"], "mail a@b.com")
    assert code == 0
    assert json.loads(out.out)["text"] == "mail [EMAIL_1]"


def test_cli_sanitize_blocked(monkeypatch, capsys):
    code, out = _run_cli(monkeypatch, capsys, ["sanitize"], "ssn 123-45-6789")
    assert code == cli.EXIT_BLOCKED
    body = json.loads(out.out)
    assert body["text"] is None
    assert body["blocked_types"] == ["ssn"]


def test_cli_messages_then_restore(monkeypatch, capsys, tmp_path):
    messages = json.dumps([{"role": "user", "content": "call 555-123-4567"}])
    code, out = _run_cli(monkeypatch, capsys, ["sanitize-messages", "--tier", "private"], messages)
    assert code == 0
    map_file = tmp_path / "map.json"
    map_file.write_text(out.out)

    code, out = _run_cli(monkeypatch, capsys, ["restore", "--map", str(map_file)], "ring [PHONE_1]")
    assert code == 0
    assert out.out == "ring 555-123-4567"


def test_cli_messages_blocked(monkeypatch, capsys):
    messages = json.dumps([{"role": "user", "content": "key sk-abcdefghijklmnopqrstuvwxyz"}])
    code, out = _run_cli(monkeypatch, capsys, ["sanitize-messages"], messages)
    assert code == cli.EXIT_BLOCKED
    assert "API key or secret" in out.err


def test_cli_route_and_detect(monkeypatch, capsys):
    code, out = _run_cli(monkeypatch, capsys, ["route", "community"])
    assert json.loads(out.out) == {"store": "server", "anonymize": False}

    code, out = _run_cli(monkeypatch, capsys, ["detect"], "x 123-45-6789")
    assert json.loads(out.out) == [
        {"type": "ssn", "label": "Social Security Number", "start": 2, "end": 13},
    ]


def test_cli_bad_json(monkeypatch, capsys):
    code, out = _run_cli(monkeypatch, capsys, ["sanitize-messages"], "not json")
    assert code == 1
    assert out.err.startswith("error:")
