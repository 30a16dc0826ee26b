"""Config command group (show/path/get/set)."""

from __future__ import annotations

import json

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from noderpc.cli.shared.json_utils import deep_get, deep_set, load_config_json, parse_value, save_config_json
from noderpc.config.loader import get_config_path, load_config


def register_config_commands(app: typer.Typer, console: Console) -> None:
    """Register the config command group."""
    config_app = typer.Typer(help="Config helpers (show/path/get/set)")
    app.add_typer(config_app, name="config")

    @config_app.command("show")
    def config_show() -> None:
        """Show the effective configuration; header values are masked."""
        try:
            config = load_config()
        except ValueError as e:
            console.print(f"[red]Error:[/red] {escape(str(e))}")
            raise typer.Exit(1)
        table = Table(title="noderpc config")
        table.add_column("Key", style="cyan")
        table.add_column("Value")
        table.add_row("network.url", config.network.url or "[dim]not set[/dim]")
        table.add_row("network.name", config.network.name)
        table.add_row("network.timeout", "default" if config.network.timeout is None else f"{config.network.timeout}s")
        for name in sorted(config.network.extra_headers):
            table.add_row(f"network.extraHeaders.{name}", "***")
        table.add_row("retry.maxRetries", str(config.retry.max_retries))
        table.add_row("retry.maxWaitSeconds", str(config.retry.max_wait_seconds))
        table.add_row("proxy.http_proxy", config.proxy.http_proxy or "[dim]not set[/dim]")
        table.add_row("proxy.no_proxy", config.proxy.no_proxy or "[dim]not set[/dim]")
        console.print(table)

    @config_app.command("path")
    def config_path() -> None:
        """Print the config file path."""
        path = get_config_path()
        console.print(f"{path} {'[green]✓[/green]' if path.exists() else '[red]✗[/red]'}")

    @config_app.command("get")
    def config_get(
        key: str = typer.Argument(..., help="Dotted key path, e.g. network.url"),
    ) -> None:
        data = load_config_json()
        try:
            value = deep_get(data, key)
        except KeyError:
            console.print(f"[red]Key not found:[/red] {key}")
            raise typer.Exit(1)
        console.print(json.dumps(value, indent=2, ensure_ascii=False), markup=False, highlight=False)

    @config_app.command("set")
    def config_set(
        key: str = typer.Argument(..., help="Dotted key path, e.g. retry.maxRetries"),
        value: str = typer.Argument(..., help="JSON value or plain string"),
    ) -> None:
        data = load_config_json()
        previous = json.loads(json.dumps(data))
        deep_set(data, key, parse_value(value))
        path = save_config_json(data)
        try:
            load_config(path)
        except ValueError as e:
            save_config_json(previous, path)
            console.print(f"[red]Invalid value for {escape(key)}:[/red] {escape(str(e))}")
            raise typer.Exit(1)
        console.print(f"[green]✓[/green] Set {key}")
