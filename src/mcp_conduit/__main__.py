"""CLI entry point for MCP Conduit."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click

from .config import Config
from .mcp_client.dispatcher import call_tool, list_tools, parse_server_config
from .mcp_client.exceptions import ErrorKind, MCPClientError
from .models.mcp import ListToolsFailure, ServerConfig
from .utils.logging_setup import configure_logging


@click.group()
@click.option(
    "--config-file", "-c",
    type=click.Path(exists=True, dir_okay=False, resolve_path=True),
    help="Path to a JSON configuration file.",
    envvar="MCP_CONDUIT_CONFIG_FILE"
)
@click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None, # Default will be taken from Config object's default, then overridden if this is set
    help="Override the logging level (e.g., DEBUG, INFO).",
)
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Override logging format.",
)
@click.pass_context
def cli(ctx: click.Context, config_file: Optional[str], log_level: Optional[str], log_format: Optional[str]) -> None:
    """MCP Conduit - list and call tools on MCP servers over HTTP or SSE."""
    try:
        if config_file:
            cfg = Config.from_file(Path(config_file))
        else:
            # Load from environment variables (and .env file if present)
            cfg = Config()
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    if log_level:
        cfg.logging.level = log_level.upper()
    if log_format:
        cfg.logging.format = log_format.lower()

    configure_logging(cfg.logging)
    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


def server_options(func):
    """Options shared by every command that talks to a server."""
    func = click.option("--timeout-ms", type=click.IntRange(min=1), default=None, help="Per-call deadline in milliseconds.")(func)
    func = click.option("--handshake-url", default=None, help="Explicit handshake / SSE stream URL.")(func)
    func = click.option("--header", "-H", "headers", multiple=True, help="Extra request header as KEY=VALUE. Can be used multiple times.")(func)
    func = click.option(
        "--transport", "-t",
        type=click.Choice(["http", "sse"], case_sensitive=False),
        default="http",
        show_default=True,
        help="Wire transport spoken by the server.",
    )(func)
    return func


def build_server_config(url: str, transport: str, headers: Tuple[str, ...], handshake_url: Optional[str], timeout_ms: Optional[int]) -> ServerConfig:
    header_map: Dict[str, str] = {}
    for item in headers:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise MCPClientError(f"Invalid header '{item}': expected KEY=VALUE", kind=ErrorKind.VALIDATION_FAILED)
        header_map[key.strip()] = value.strip()
    payload: Dict[str, Any] = {
        "url": url,
        "transport": transport.lower(),
        "headers": header_map or None,
        "handshakeUrl": handshake_url,
        "timeoutMs": timeout_ms,
    }
    return parse_server_config(payload)


def _server_or_exit(*args: Any) -> ServerConfig:
    try:
        return build_server_config(*args)
    except MCPClientError as e:
        click.echo(json.dumps(e.to_dict()), err=True)
        sys.exit(2)


@cli.command("list-tools")
@click.argument("url")
@server_options
@click.pass_context
def list_tools_command(ctx: click.Context, url: str, transport: str, headers: Tuple[str, ...], handshake_url: Optional[str], timeout_ms: Optional[int]) -> None:
    """Lists the tools exposed by the MCP server at URL."""
    config: Config = ctx.obj["config"]
    server = _server_or_exit(url, transport, headers, handshake_url, timeout_ms)

    result = asyncio.run(list_tools(server, app_config=config))
    click.echo(json.dumps(result.to_payload(), indent=2))
    if isinstance(result, ListToolsFailure):
        sys.exit(1)


@cli.command("call-tool")
@click.argument("url")
@click.argument("name")
@click.option("--args", "args_json", default="{}", show_default=True, help="Tool arguments as a JSON object.")
@server_options
@click.pass_context
def call_tool_command(ctx: click.Context, url: str, name: str, args_json: str, transport: str, headers: Tuple[str, ...], handshake_url: Optional[str], timeout_ms: Optional[int]) -> None:
    """Calls tool NAME on the MCP server at URL and prints its raw result."""
    config: Config = ctx.obj["config"]
    server = _server_or_exit(url, transport, headers, handshake_url, timeout_ms)

    try:
        arguments = json.loads(args_json)
    except ValueError as e:
        click.echo(json.dumps({"kind": "validation_failed", "message": f"--args is not valid JSON: {e}"}), err=True)
        sys.exit(2)
    if not isinstance(arguments, dict):
        click.echo(json.dumps({"kind": "validation_failed", "message": "--args must be a JSON object"}), err=True)
        sys.exit(2)

    try:
        result = asyncio.run(call_tool(server, name, arguments, app_config=config))
    except MCPClientError as e:
        click.echo(json.dumps(e.to_dict()), err=True)
        sys.exit(1)
    click.echo(json.dumps(result.model_dump(), indent=2, default=str))


@cli.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    click.echo(f"MCP Conduit v{__version__}")


@cli.command()
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show current configuration."""
    config: Config = ctx.obj["config"]
    click.echo(config.model_dump_json(indent=2))


if __name__ == "__main__":
    cli()
