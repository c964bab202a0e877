"""CLI entry point for alexa-velux."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer
from rich.console import Console
from rich.syntax import Syntax

from . import __version__
from .cli_commands import register_config_commands, register_store_commands
from .core.client import VeluxSkillClient
from .core.config_loader import ConfigError, get_config
from .core.exceptions import (
    AuthRequestError,
    ConfigurationMissing,
    IncompleteSessionError,
    PersistenceError,
    TransportError,
    VeluxError,
)
from .core.logger import LOG_LEVELS, setup_logging
from .core.models import SkillType
from .core.session import SessionContext

T = TypeVar("T")

app = typer.Typer(
    name="alexa-velux",
    help="""Talk to the Velux Active backend the way the Alexa skill does.

Tokens are obtained, refreshed and persisted automatically; a request that
fails because its token expired or was revoked is retried exactly once.

Quick start:
  alexa-velux store put-settings settings.json
  alexa-velux store put-credentials <user-id> credentials.json
  alexa-velux warmup --user <user-id>
  alexa-velux run-scenario close-all --user <user-id>
""",
    add_completion=False,
)
console = Console()

register_store_commands(app)
register_config_commands(app)


UserOption = typer.Option(..., "--user", "-u", help="Session user id (Alexa account id)")
SkillTypeOption = typer.Option(
    None,
    "--skill-type",
    "-s",
    help="custom or smart_home (default: from config)",
)
LogLevelOption = typer.Option(
    None, "--log-level", "-l", help="Log level: debug, info, warning, error (default: from config)"
)


def _parse_skill_type(value: str | None) -> SkillType | None:
    if value is None:
        return None
    try:
        return SkillType(value.lower())
    except ValueError:
        console.print(
            f"[red]Error: Invalid skill type '{value}'. Valid options: custom, smart_home[/red]"
        )
        raise typer.Exit(1) from None


def _parse_log_level(value: str | None) -> str | None:
    if value is None:
        return None
    if value.lower() not in LOG_LEVELS:
        valid = ", ".join(LOG_LEVELS)
        console.print(f"[red]Error: Invalid log level '{value}'. Valid options: {valid}[/red]")
        raise typer.Exit(1)
    return value.lower()


def _run_with_session(
    user: str,
    skill_type: str | None,
    log_level: str | None,
    operation: Callable[[VeluxSkillClient, SessionContext], Awaitable[T]],
) -> T:
    """Build a client from config, run ``operation`` and map errors to exit codes."""
    parsed_skill_type = _parse_skill_type(skill_type)
    parsed_log_level = _parse_log_level(log_level)

    try:
        config = get_config()
    except ConfigError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1) from None

    setup_logging(
        parsed_log_level or config.logging.level,
        log_file=None if config.logging.file is None else Path(config.logging.file),
    )

    async def _main() -> T:
        async with VeluxSkillClient.from_config(config) as client:
            session = client.new_session(user, parsed_skill_type)
            return await operation(client, session)

    try:
        return asyncio.run(_main())
    except ConfigurationMissing as e:
        console.print(f"[red]❌ Configuration missing:[/red] {e}")
    except IncompleteSessionError as e:
        console.print(f"[red]❌ Session incomplete:[/red] {e}")
    except AuthRequestError as e:
        console.print(f"[red]❌ Authentication failed:[/red] {e}")
    except TransportError as e:
        console.print(f"[red]❌ Request failed:[/red] {e}")
    except PersistenceError as e:
        console.print(f"[red]❌ Store error:[/red] {e}")
    except VeluxError as e:
        console.print(f"[red]❌ {e}[/red]")
    raise typer.Exit(1)


def _print_json(data: Any, raw: bool) -> None:
    text = json.dumps(data, indent=2, default=str)
    if raw:
        print(text)
    else:
        console.print(Syntax(text, "json", theme="monokai", line_numbers=False))


# =============================================================================
# Commands
# =============================================================================


@app.command()
def warmup(
    user: str = UserOption,
    skill_type: str | None = SkillTypeOption,
    log_level: str | None = LogLevelOption,
) -> None:
    """Load settings, credentials and token for a user (secrets masked).

    Requests a new token with the stored password when none is cached.

    Examples:
        alexa-velux warmup --user amzn1.ask.account.XYZ
        alexa-velux warmup -u alice -s smart_home -l info
    """

    async def _warm(client: VeluxSkillClient, session: SessionContext) -> SessionContext:
        return await client.warm_up(session)

    session = _run_with_session(user, skill_type, log_level, _warm)
    if session.is_ready:
        console.print("[bold green]✓ Session ready[/bold green]")
    else:
        console.print(
            f"[yellow]⚠️  Session incomplete, missing: {', '.join(session.missing())}[/yellow]"
        )
    _print_json(session.to_display_dict(), raw=False)


@app.command(name="run-scenario")
def run_scenario(
    scenario: str = typer.Argument(..., help="Scenario to run (e.g. 'close-all')"),
    user: str = UserOption,
    skill_type: str | None = SkillTypeOption,
    log_level: str | None = LogLevelOption,
    raw: bool = typer.Option(False, "--raw", "-r", help="Print raw JSON"),
) -> None:
    """Run a scenario on the user's home.

    Examples:
        alexa-velux run-scenario close-all --user alice
    """

    async def _run(client: VeluxSkillClient, session: SessionContext) -> Any:
        return await client.run_scenario(session, scenario)

    _print_json(_run_with_session(user, skill_type, log_level, _run), raw)


@app.command(name="home-info")
def home_info(
    user: str = UserOption,
    skill_type: str | None = SkillTypeOption,
    log_level: str | None = LogLevelOption,
    raw: bool = typer.Option(False, "--raw", "-r", help="Print raw JSON"),
) -> None:
    """Fetch the user's homes, modules and measurements."""

    async def _run(client: VeluxSkillClient, session: SessionContext) -> Any:
        return await client.home_info(session)

    _print_json(_run_with_session(user, skill_type, log_level, _run), raw)


@app.command(name="home-status")
def home_status(
    user: str = UserOption,
    home_id: str | None = typer.Option(None, "--home-id", help="Home id (default: user's home)"),
    skill_type: str | None = SkillTypeOption,
    log_level: str | None = LogLevelOption,
    raw: bool = typer.Option(False, "--raw", "-r", help="Print raw JSON"),
) -> None:
    """Fetch the live status of a home."""

    async def _run(client: VeluxSkillClient, session: SessionContext) -> Any:
        return await client.home_status(session, home_id)

    _print_json(_run_with_session(user, skill_type, log_level, _run), raw)


@app.command()
def link(
    code: str = typer.Argument(..., help="Credential record key, config-<username>"),
    user_id: str = typer.Argument(..., help="Platform user id to attach"),
) -> None:
    """Link a platform user id to a stored record.

    SmartHome sessions resolve their credentials through this link.

    Examples:
        alexa-velux link config-alice@example.com amzn1.ask.account.XYZ
    """

    async def _link(client: VeluxSkillClient, session: SessionContext) -> None:
        await client.link_account(code, user_id)

    _run_with_session(user_id, None, None, _link)
    console.print(f"[green]✓ Linked[/green] {user_id} → {code}")


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"alexa-velux {__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
