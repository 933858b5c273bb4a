"""Integration tests for the minimcp command line.

Uses click's CliRunner; the server side is tests/integration/fake_server.py
launched through --command.
"""

import json
import sys
from pathlib import Path

import click
import pytest
from click.testing import CliRunner

from minimcp.cli import ConnectionOptions, main, parse_param
from minimcp.transport import HttpSseTransport

FAKE_SERVER = Path(__file__).parent / "fake_server.py"
SERVER_OPTIONS = ["--command", sys.executable, "--arg", str(FAKE_SERVER), "--timeout", "10"]


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


# =============================================================================
# Tests: Option parsing
# =============================================================================


class TestParseParam:
    """Tests for key=value tool arguments."""

    def test_json_value(self):
        assert parse_param("count=3") == ("count", 3)
        assert parse_param("flags=[1, 2]") == ("flags", [1, 2])

    def test_plain_string_value(self):
        assert parse_param("name=hello world") == ("name", "hello world")

    def test_value_may_contain_equals(self):
        assert parse_param("expr=a=b") == ("expr", "a=b")

    @pytest.mark.parametrize("text", ["novalue", "=1"])
    def test_invalid(self, text: str):
        with pytest.raises(click.BadParameter):
            parse_param(text)


class TestUsage:
    """Connection option validation."""

    def test_requires_url_or_command(self, runner: CliRunner, monkeypatch):
        monkeypatch.delenv("MINIMCP_URL", raising=False)

        result = runner.invoke(main, ["tools"])

        assert result.exit_code == 2
        assert "Pass exactly one of --url or --command" in result.output

    def test_rejects_both(self, runner: CliRunner):
        result = runner.invoke(main, ["--url", "http://localhost:1/mcp", *SERVER_OPTIONS, "tools"])

        assert result.exit_code == 2

    def test_make_transport_without_endpoint(self):
        options = ConnectionOptions(url=None, command=None, args=(), timeout=1.0, roots=False)

        with pytest.raises(click.UsageError):
            options.make_transport()

    def test_make_transport_for_url(self):
        options = ConnectionOptions(
            url="http://localhost:8080/mcp", command=None, args=(), timeout=1.0, roots=False
        )

        transport = options.make_transport()

        assert isinstance(transport, HttpSseTransport)
        assert transport.url == "http://localhost:8080/mcp"

    def test_version(self, runner: CliRunner):
        result = runner.invoke(main, ["--version"])

        assert result.exit_code == 0
        assert "minimcp" in result.output


# =============================================================================
# Tests: Commands against a live server
# =============================================================================


@pytest.mark.integration
class TestCommands:
    """Run subcommands against the scripted server."""

    def test_tools(self, runner: CliRunner):
        result = runner.invoke(main, [*SERVER_OPTIONS, "tools"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["tools"][0]["name"] == "echo"

    def test_call(self, runner: CliRunner):
        result = runner.invoke(
            main,
            [*SERVER_OPTIONS, "call", "echo", "-p", "a=1", "--json", '{"b": "x"}'],
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["content"][0]["text"] == json.dumps({"a": 1, "b": "x"}, sort_keys=True)

    def test_call_rejects_non_object_json(self, runner: CliRunner):
        result = runner.invoke(main, [*SERVER_OPTIONS, "call", "echo", "--json", "[1]"])

        assert result.exit_code == 2
        assert "must be a JSON object" in result.output

    def test_remote_error_exits_nonzero(self, runner: CliRunner):
        result = runner.invoke(main, [*SERVER_OPTIONS, "call", "missing"])

        assert result.exit_code == 1
        assert "Unknown tool: missing" in result.output

    def test_roots_requires_flag(self, runner: CliRunner):
        result = runner.invoke(main, [*SERVER_OPTIONS, "roots"])

        assert result.exit_code == 1
        assert "Client does not support roots capability" in result.output

    def test_roots(self, runner: CliRunner):
        result = runner.invoke(main, [*SERVER_OPTIONS, "--roots", "roots"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == []
