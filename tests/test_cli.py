import json
import logging

import httpx
import respx
from typer.testing import CliRunner

from fetchling.cli.main import app

runner = CliRunner()
BASE_URL = "https://example.com"


def test_read_prints_json():
    with respx.mock:
        route = respx.get(f"{BASE_URL}/api/resource/users/id/7").mock(
            return_value=httpx.Response(status_code=200, json={"name": "Ada"})
        )
        result = runner.invoke(
            app,
            ["read", "users", "--base-url", BASE_URL, "--id-param", "id", "-p", "id=7"],
        )

    assert result.exit_code == 0
    assert route.call_count == 1
    assert json.loads(result.output) == {"name": "Ada"}


def test_create_sends_envelope():
    with respx.mock:
        route = respx.post(f"{BASE_URL}/api").mock(
            return_value=httpx.Response(status_code=200, json={"g0": {"data": {"id": 1}}})
        )
        result = runner.invoke(
            app,
            [
                "create",
                "users",
                "--base-url",
                BASE_URL,
                "--crumb",
                "abc",
                "--body",
                '{"name": "Ada"}',
            ],
        )

    assert result.exit_code == 0
    sent = json.loads(route.calls.last.request.content)
    assert sent["requests"]["g0"]["body"] == {"name": "Ada"}
    assert sent["context"] == {"crumb": "abc"}
    assert route.calls.last.request.url.params["crumb"] == "abc"


def test_failed_call_exits_with_error():
    with respx.mock:
        respx.post(f"{BASE_URL}/api").mock(return_value=httpx.Response(status_code=403))
        result = runner.invoke(app, ["delete", "users", "--base-url", BASE_URL, "-p", "id=1"])

    assert result.exit_code == 1
    assert "403" in result.output


def test_invalid_param_is_rejected():
    result = runner.invoke(app, ["read", "users", "-p", "novalue"])

    assert result.exit_code != 0


def test_invalid_body_is_rejected():
    result = runner.invoke(app, ["update", "users", "--body", "{oops"])

    assert result.exit_code != 0


def test_verbose_enables_debug_logging():
    with respx.mock:
        respx.get(f"{BASE_URL}/api/resource/users").mock(
            return_value=httpx.Response(status_code=200, json=[])
        )
        result = runner.invoke(app, ["--verbose", "read", "users", "--base-url", BASE_URL])

    assert result.exit_code == 0
    assert logging.getLogger("fetchling").level == logging.DEBUG
    logging.getLogger("fetchling").setLevel(logging.WARNING)


def test_read_uses_environment_path_and_context(monkeypatch):
    monkeypatch.setenv("FETCHLING_XHR_PATH", "/xhr")
    monkeypatch.setenv("FETCHLING_CONTEXT", '{"lang": "fr"}')
    with respx.mock:
        route = respx.get(f"{BASE_URL}/xhr/resource/users").mock(
            return_value=httpx.Response(status_code=200, json={"name": "Ada"})
        )
        result = runner.invoke(app, ["read", "users", "--base-url", BASE_URL])

    assert result.exit_code == 0
    assert route.call_count == 1
    assert route.calls.last.request.url.params["lang"] == "fr"


def test_cli_context_merges_over_environment_context(monkeypatch):
    monkeypatch.setenv("FETCHLING_CONTEXT", '{"lang": "fr", "site": "my"}')
    with respx.mock:
        route = respx.post(f"{BASE_URL}/other").mock(
            return_value=httpx.Response(status_code=200, json={"g0": {"data": 1}})
        )
        result = runner.invoke(
            app,
            [
                "update",
                "users",
                "--base-url",
                BASE_URL,
                "--xhr-path",
                "/other",
                "-c",
                "lang=de",
                "--crumb",
                "abc",
            ],
        )

    assert result.exit_code == 0
    sent = json.loads(route.calls.last.request.content)
    assert sent["context"] == {"lang": "de", "site": "my", "crumb": "abc"}
    assert dict(route.calls.last.request.url.params) == {"crumb": "abc", "lang": "de", "site": "my"}
