"""CLI commands for noderpc.

In the overall architecture: the CLI is the single entry point, registering the top-level
commands (call, batch) and the config command group.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, NoReturn

import httpx
import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape

from noderpc import __logo__, __version__
from noderpc.cli.command_groups.config_commands import register_config_commands
from noderpc.cli.shared.json_utils import parse_batch, parse_headers, parse_params
from noderpc.cli.shared.logging_utils import configure_stderr, ensure_rotating_log_file
from noderpc.config.loader import load_config
from noderpc.config.schema import Config
from noderpc.providers.http import HttpProvider
from noderpc.transport.request import RequestError
from noderpc.utils.exceptions import NodeRpcError, ProviderError, classify_exception, sanitize_error_message

app = typer.Typer(
    name="noderpc",
    help=f"{__logo__} noderpc - JSON-RPC over HTTP client",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} noderpc v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """noderpc - JSON-RPC over HTTP client."""
    pass


register_config_commands(app=app, console=console)


def _effective_config(url: str | None, network: str | None, header: list[str] | None, timeout: float | None) -> Config:
    """Config file values overridden by command-line options."""
    try:
        config = load_config()
    except ValueError as e:
        _fail(e)
    try:
        headers = parse_headers(header)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--header")

    updates: dict[str, Any] = {"extra_headers": {**config.network.extra_headers, **headers}}
    if url:
        updates["url"] = url
    if network:
        updates["name"] = network
    if timeout is not None:
        updates["timeout"] = timeout
    config.network = config.network.model_copy(update=updates)

    if not config.network.url:
        raise typer.BadParameter("no node URL: pass --url or set network.url in the config file", param_hint="--url")
    return config


def _print_event(name: str, payload: dict[str, Any]) -> None:
    if name == "retry":
        err_console.print(
            f"[dim]rate limited by {payload.get('hostname')}, "
            f"retry {payload.get('retry_count')} in {payload.get('wait_seconds')}s[/dim]"
        )


def _print_result(value: Any) -> None:
    console.print(json.dumps(value, indent=2, ensure_ascii=False), markup=False, highlight=False, soft_wrap=True)


def _fail(exc: Exception) -> NoReturn:
    """Print a caught error on stderr and exit 1."""
    code, category = classify_exception(exc)
    logger.debug(f"command failed: {code} ({category.value}): {exc!r}")
    if isinstance(exc, NodeRpcError):
        text = str(exc)
    else:
        text = f"[{code}] {str(exc) or type(exc).__name__}"
    err_console.print(f"[red]Error:[/red] {escape(sanitize_error_message(text))}", highlight=False)
    if isinstance(exc, ProviderError) and exc.data is not None:
        err_console.print(json.dumps(exc.data, ensure_ascii=False, default=str), markup=False, highlight=False)
    raise typer.Exit(1)


def _execute(config: Config, action: Callable[[HttpProvider], Awaitable[Any]]) -> Any:
    async def _run() -> Any:
        async with HttpProvider.from_config(config, on_event=_print_event) as provider:
            return await action(provider)

    try:
        return asyncio.run(_run())
    except (NodeRpcError, RequestError, httpx.HTTPError) as e:
        _fail(e)


def _setup_logging(command: str, verbose: bool, log_file: bool) -> None:
    configure_stderr(verbose)
    if log_file:
        ensure_rotating_log_file(command, level="DEBUG" if verbose else "INFO")


@app.command()
def call(
    method: str = typer.Argument(..., help="Method name, e.g. eth_blockNumber"),
    params: str = typer.Argument("[]", help="JSON array or object of params"),
    url: str = typer.Option(None, "--url", "-u", help="Node URL (overrides network.url)"),
    network: str = typer.Option(None, "--network", "-n", help="Network name shown in errors"),
    header: list[str] = typer.Option(None, "--header", "-H", help="Extra header NAME=VALUE (repeatable)"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Per-attempt timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging to stderr"),
    log_file: bool = typer.Option(False, "--log-file", help="Also log to ~/.noderpc/logs/call.log"),
):
    """Send one call and print its result as JSON."""
    _setup_logging("call", verbose, log_file)
    config = _effective_config(url, network, header, timeout)
    call_params = parse_params(params)

    result = _execute(config, lambda provider: provider.call(method, call_params))
    _print_result(result)


@app.command()
def batch(
    calls: str = typer.Argument(..., help='JSON array of {"method", "params"} objects or [method, params] pairs'),
    url: str = typer.Option(None, "--url", "-u", help="Node URL (overrides network.url)"),
    network: str = typer.Option(None, "--network", "-n", help="Network name shown in errors"),
    header: list[str] = typer.Option(None, "--header", "-H", help="Extra header NAME=VALUE (repeatable)"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Per-attempt timeout in seconds"),
    verbose: bool = typer.Option(False, "--verbose", help="Debug logging to stderr"),
    log_file: bool = typer.Option(False, "--log-file", help="Also log to ~/.noderpc/logs/batch.log"),
):
    """Send calls as one batch and print the results in input order."""
    _setup_logging("batch", verbose, log_file)
    try:
        requests = parse_batch(calls)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="CALLS")
    config = _effective_config(url, network, header, timeout)

    results = _execute(config, lambda provider: provider.call_batch(requests))
    _print_result(results)


if __name__ == "__main__":
    app()
