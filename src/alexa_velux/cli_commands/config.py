"""Config commands for alexa-velux: init, show and path."""

import typer
from rich.console import Console
from rich.syntax import Syntax
from rich.table import Table

from ..core.config_loader import (
    ENV_OVERRIDES,
    ConfigError,
    get_config,
    get_config_file_path,
    get_env_overrides,
    write_default_config,
)

console = Console()

config_app = typer.Typer(
    name="config",
    help="📋 Manage local runtime configuration.",
    no_args_is_help=True,
)


@config_app.command(name="init")
def config_init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing config"),
    show: bool = typer.Option(False, "--show", "-s", help="Show config after creation"),
) -> None:
    """🚀 Create .alexa-velux/config.json with default values."""
    config_path = get_config_file_path()
    try:
        write_default_config(config_path, overwrite=force)
    except FileExistsError:
        console.print(f"[yellow]⚠️  Config file already exists:[/yellow] {config_path}")
        console.print("[dim]Use --force to overwrite.[/dim]")
        raise typer.Exit(1) from None
    except OSError as e:
        console.print(f"[red]❌ Error creating config: {e}[/red]")
        raise typer.Exit(1) from None

    console.print(f"[green]✅ Config file created:[/green] {config_path}")
    if show:
        _show_config(raw=False)


@config_app.command(name="show")
def config_show(
    raw: bool = typer.Option(False, "--raw", "-r", help="Show raw JSON without formatting"),
    env: bool = typer.Option(False, "--env", "-e", help="Show environment variable overrides"),
) -> None:
    """📖 Display the active configuration, env overrides included.

    Examples:
        alexa-velux config show --raw
        ALEXA_VELUX_SKILL_TYPE=smart_home alexa-velux config show --env
    """
    if env:
        _show_env_overrides()
    else:
        _show_config(raw=raw)


@config_app.command(name="path")
def config_path(
    check: bool = typer.Option(False, "--check", "-c", help="Fail if the file does not exist"),
) -> None:
    """📍 Print the path of the configuration file."""
    path = get_config_file_path()
    if not check:
        console.print(str(path))
    elif path.exists():
        console.print(f"[green]✅ {path}[/green]")
    else:
        console.print(f"[yellow]⚠️  {path}[/yellow] [dim](not found)[/dim]")
        raise typer.Exit(1)


def _show_config(raw: bool) -> None:
    try:
        config = get_config()
    except ConfigError as e:
        console.print(f"[red]❌ Error loading config: {e}[/red]")
        raise typer.Exit(1) from None

    config_json = config.model_dump_json(indent=2)
    if raw:
        print(config_json)
        return

    path = get_config_file_path()
    source = str(path) if path.exists() else "defaults, no file"
    console.print(f"[bold blue]📋 Configuration[/bold blue] [dim]({source})[/dim]\n")
    console.print(Syntax(config_json, "json", theme="monokai", line_numbers=False))

    overrides = get_env_overrides()
    if overrides:
        console.print(
            f"\n[dim]📎 {len(overrides)} environment variable override(s) applied[/dim]"
        )


def _show_env_overrides() -> None:
    overrides = get_env_overrides()
    console.print("[bold blue]🔧 Environment Variable Overrides[/bold blue]\n")

    if overrides:
        for env_var, value in overrides.items():
            console.print(f"  [cyan]{env_var}[/cyan] = {value}")
        return

    console.print("[dim]No environment variable overrides are currently set.[/dim]\n")
    console.print("[bold]Available environment variables:[/bold]")
    table = Table()
    table.add_column("Variable", style="cyan")
    table.add_column("Config Path")
    table.add_column("Description", style="dim")
    for override in ENV_OVERRIDES:
        table.add_row(override.env_var, override.config_path, override.description)
    console.print(table)


def register_config_commands(app: typer.Typer) -> None:
    """Register config command group with the Typer app."""
    app.add_typer(config_app, name="config")
