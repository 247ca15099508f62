"""Shopickup command line: run the dev-server, inspect configuration.

Usage:
    shopickup serve             Start the dev-server
    shopickup config show       Print the effective configuration
    shopickup config validate   Validate a config file
    shopickup version           Print the package version
"""

import os
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from yaml import YAMLError

from shopickup import __version__
from shopickup.api.dependencies import CONFIG_PATH_ENV
from shopickup.config import ShopickupConfig, load_config

app = typer.Typer(
    name="shopickup",
    help="Multi-carrier shipping adapters and dev-server",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")
app.add_typer(config_app, name="config")

console = Console()


def _load_or_exit(config: str | None) -> ShopickupConfig:
    try:
        return load_config(config_path=config)
    except FileNotFoundError as e:
        console.print(f"[red]Config file not found:[/red] {e}")
        raise typer.Exit(1)
    except (ValidationError, YAMLError) as e:
        console.print(f"[red]Config validation failed:[/red] {e}")
        raise typer.Exit(1)


@app.command()
def version():
    """Print the Shopickup version."""
    console.print(f"[bold]Shopickup[/bold] v{__version__}")


@app.command()
def serve(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (overrides config)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port (overrides config)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Start the dev-server with uvicorn."""
    import uvicorn

    cfg = _load_or_exit(config)
    if config:
        # The app process reads the same file through get_config()
        os.environ[CONFIG_PATH_ENV] = config

    bind_host = host or cfg.server.host
    bind_port = port or cfg.server.port
    console.print(f"[green]Starting Shopickup dev-server[/green] on http://{bind_host}:{bind_port}")
    uvicorn.run(
        "shopickup.api.main:app",
        host=bind_host,
        port=bind_port,
        log_level=cfg.server.log_level,
        reload=reload,
    )


@config_app.command("show")
def config_show(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Display the effective configuration."""
    cfg = _load_or_exit(config)

    console.print("[bold]Server:[/bold]")
    console.print(f"  host: {cfg.server.host}")
    console.print(f"  port: {cfg.server.port}")
    console.print(f"  log_level: {cfg.server.log_level}")
    console.print(f"  tracing: {cfg.server.tracing}")

    console.print("\n[bold]HTTP:[/bold]")
    console.print(f"  timeout_seconds: {cfg.http.timeout_seconds}")

    console.print("\n[bold]Carriers:[/bold]")
    console.print(f"  foxpost: {cfg.foxpost.prod_base_url} (test: {cfg.foxpost.test_base_url})")
    console.print(f"  gls: per-country, delivery points {cfg.gls.delivery_points_url}")
    console.print(f"  mpl: {cfg.mpl.prod_base_url} (test: {cfg.mpl.test_base_url})")

    console.print("\n[bold]Batch:[/bold]")
    console.print(f"  max_concurrency: {cfg.batch.max_concurrency}")

    console.print("\n[bold]Logging:[/bold]")
    console.print(f"  log_raw_response: {cfg.logging.log_raw_response}")
    console.print(f"  silent_operations: {', '.join(cfg.logging.silent_operations) or '-'}")


@config_app.command("validate")
def config_validate(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Validate a config file without starting the server."""
    cfg = _load_or_exit(config)
    console.print("[green]Config is valid.[/green]")
    console.print(f"  Server: {cfg.server.host}:{cfg.server.port}")
    console.print(f"  Max concurrency: {cfg.batch.max_concurrency}")


if __name__ == "__main__":
    app()
