"""minimcp command line.

Connects to an MCP server, runs one request and prints the result as JSON.

Usage:
    minimcp --url http://localhost:8080/mcp tools
    minimcp --command node --arg server.js resources
    minimcp --url http://localhost:8080/mcp read file:///tmp/notes.txt
    minimcp --url http://localhost:8080/mcp call add -p a=1 -p b=2
    minimcp --url http://localhost:8080/mcp --roots roots

The server URL can also come from MINIMCP_URL. Logs go to stderr so stdout
only carries results (and, with --command, nothing of the protocol).
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import click
from pydantic import BaseModel

from . import __version__
from .client import McpClient
from .errors import McpClientError
from .transport import HttpSseTransport, ProcessTransport, Transport, TransportConfig
from .types import ClientCapabilities, Implementation

logger = logging.getLogger(__name__)

CLIENT_NAME = "minimcp-cli"


@dataclass
class ConnectionOptions:
    """Options shared by every subcommand."""

    url: str | None
    command: str | None
    args: tuple[str, ...]
    timeout: float
    roots: bool

    def make_transport(self) -> Transport:
        config = TransportConfig(timeout=self.timeout)
        if self.command:
            return ProcessTransport(self.command, self.args, config=config)
        if not self.url:
            raise click.UsageError("Pass exactly one of --url or --command")
        return HttpSseTransport(self.url, config=config)


def to_jsonable(value: Any) -> Any:
    """Convert results (pydantic models, lists of them) to plain JSON data."""
    if isinstance(value, BaseModel):
        return value.model_dump(exclude_none=True)
    if isinstance(value, list):
        return [to_jsonable(v) for v in value]
    return value


def parse_param(text: str) -> tuple[str, Any]:
    """Parse a ``key=value`` option. Values are JSON when they parse as JSON."""
    key, sep, raw = text.partition("=")
    if not sep or not key:
        raise click.BadParameter(f"expected key=value, got {text!r}")
    try:
        return key, json.loads(raw)
    except json.JSONDecodeError:
        return key, raw


async def run_with_client(
    options: ConnectionOptions,
    operation: Callable[[McpClient], Awaitable[Any]],
) -> Any:
    """Connect, run ``operation``, then shut down."""
    client = McpClient(
        Implementation(name=CLIENT_NAME, version=__version__),
        ClientCapabilities(roots=options.roots),
    )
    await asyncio.wait_for(client.connect(options.make_transport()), options.timeout)
    try:
        return await operation(client)
    finally:
        try:
            await client.close_gracefully(timeout=options.timeout)
        except McpClientError as e:
            logger.warning(f"Shutdown failed: {e}")


def execute(options: ConnectionOptions, operation: Callable[[McpClient], Awaitable[Any]]) -> None:
    try:
        result = asyncio.run(run_with_client(options, operation))
    except (McpClientError, TimeoutError) as e:
        raise click.ClickException(str(e) or type(e).__name__) from e
    click.echo(json.dumps(to_jsonable(result), indent=2, ensure_ascii=False))


@click.group()
@click.option("--url", envvar="MINIMCP_URL", help="Server endpoint (HTTP + SSE)")
@click.option("--command", "server_command", help="Launch the server as a subprocess (stdio)")
@click.option("--arg", "server_args", multiple=True, help="Argument for --command (repeatable)")
@click.option("--timeout", default=30.0, show_default=True, help="Seconds to wait per request")
@click.option("--roots", is_flag=True, help="Declare the roots capability")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging on stderr")
@click.version_option(__version__, prog_name="minimcp")
@click.pass_context
def main(
    ctx: click.Context,
    url: str | None,
    server_command: str | None,
    server_args: tuple[str, ...],
    timeout: float,
    roots: bool,
    verbose: bool,
) -> None:
    """minimcp - talk to an MCP server from the shell."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    if bool(url) == bool(server_command):
        raise click.UsageError("Pass exactly one of --url or --command")

    ctx.obj = ConnectionOptions(
        url=url,
        command=server_command,
        args=server_args,
        timeout=timeout,
        roots=roots,
    )


@main.command()
@click.pass_obj
def tools(options: ConnectionOptions) -> None:
    """List the server's tools."""
    execute(options, lambda client: client.list_tools())


@main.command()
@click.pass_obj
def resources(options: ConnectionOptions) -> None:
    """List the server's resources."""
    execute(options, lambda client: client.list_resources())


@main.command()
@click.argument("uri")
@click.pass_obj
def read(options: ConnectionOptions, uri: str) -> None:
    """Read the resource at URI."""
    execute(options, lambda client: client.read_resource(uri))


@main.command()
@click.argument("name")
@click.option("-p", "--param", "params", multiple=True, help="Tool argument as key=value")
@click.option("--json", "json_params", help="Tool arguments as a JSON object")
@click.pass_obj
def call(
    options: ConnectionOptions,
    name: str,
    params: tuple[str, ...],
    json_params: str | None,
) -> None:
    """Call tool NAME."""
    arguments: dict[str, Any] = {}
    if json_params:
        try:
            loaded = json.loads(json_params)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"invalid JSON: {e}", param_hint="--json") from e
        if not isinstance(loaded, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--json")
        arguments.update(loaded)
    arguments.update(parse_param(p) for p in params)

    execute(options, lambda client: client.call_tool(name, arguments))


@main.command(name="roots")
@click.pass_obj
def list_roots(options: ConnectionOptions) -> None:
    """List roots (needs --roots and server support)."""
    execute(options, lambda client: client.list_roots())


if __name__ == "__main__":
    main()
