"""Store commands for alexa-velux - seed and inspect the key-value store.

Provides commands to manage the records the skill reads at warm-up:
- put-settings: Write the backend settings record
- put-credentials: Write a user's credential record
- show: Print a record with secrets masked
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
from pydantic import BaseModel, ValidationError
from rich.console import Console
from rich.syntax import Syntax

from ..core.client import create_store
from ..core.config_loader import ConfigError, get_config
from ..core.credential_store import SETTINGS_KEY, credentials_key
from ..core.exceptions import PersistenceError
from ..core.logger import redact
from ..core.models import Settings, UserCredentials
from ..core.store import KEY_ATTRIBUTE, KeyValueStore

console = Console()

store_app = typer.Typer(
    name="store",
    help="🗄️  Seed and inspect the credential store.",
    no_args_is_help=True,
)


def _open_store() -> KeyValueStore:
    try:
        return create_store(get_config())
    except ConfigError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1) from None


def _read_record(file: Path, model: type[BaseModel]) -> dict[str, Any]:
    """Load a JSON file and check it against ``model``; returns the raw data."""
    try:
        data = json.loads(file.read_text(encoding="utf-8"))
    except OSError as e:
        console.print(f"[red]❌ Cannot read {file}: {e}[/red]")
        raise typer.Exit(1) from None
    except json.JSONDecodeError as e:
        console.print(f"[red]❌ {file} is not valid JSON: {e.msg} (line {e.lineno})[/red]")
        raise typer.Exit(1) from None

    if not isinstance(data, dict):
        console.print(f"[red]❌ {file} must contain a JSON object[/red]")
        raise typer.Exit(1)

    try:
        model.model_validate(data)
    except ValidationError as e:
        console.print(f"[red]❌ {file} is not a valid {model.__name__} record:[/red]")
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            console.print(f"   [red]•[/red] {field}: {error['msg']}")
        raise typer.Exit(1) from None

    return data


def _run(coro: Any) -> Any:
    try:
        return asyncio.run(coro)
    except PersistenceError as e:
        console.print(f"[red]❌ Store error:[/red] {e}")
        raise typer.Exit(1) from None


@store_app.command(name="put-settings")
def put_settings(
    file: Path = typer.Argument(..., help="JSON file with the settings record"),
) -> None:
    """📥 Write the backend settings record.

    Examples:
        alexa-velux store put-settings settings.json
    """
    data = _read_record(file, Settings)
    store = _open_store()
    _run(store.put({**data, KEY_ATTRIBUTE: SETTINGS_KEY}))
    console.print(f"[green]✅ Stored[/green] {SETTINGS_KEY}")


@store_app.command(name="put-credentials")
def put_credentials(
    user_id: str = typer.Argument(
        ..., help="Session user id (custom skills) or username (smart home skills)"
    ),
    file: Path = typer.Argument(..., help="JSON file with username, password, home_id, bridge"),
) -> None:
    """📥 Write a user's credential record.

    Existing attributes of the record, such as a linked userId or a stored
    token pair, are kept.

    Examples:
        alexa-velux store put-credentials amzn1.ask.account.XYZ credentials.json
    """
    data = _read_record(file, UserCredentials)
    key = credentials_key(user_id)
    store = _open_store()
    _run(store.update(key, {k: v for k, v in data.items() if k != KEY_ATTRIBUTE}))
    console.print(f"[green]✅ Stored[/green] {key}")


@store_app.command(name="show")
def show(
    key: str = typer.Argument(..., help="Record key (e.g. settings, config-<id>, token-<id>)"),
    raw: bool = typer.Option(False, "--raw", "-r", help="Print raw JSON"),
) -> None:
    """📖 Print a stored record with passwords and tokens masked.

    Examples:
        alexa-velux store show settings
        alexa-velux store show config-alice --raw
    """
    store = _open_store()
    record = _run(store.get(key))
    if record is None:
        console.print(f"[yellow]⚠️  No record stored under[/yellow] {key}")
        raise typer.Exit(1)

    text = json.dumps(redact(record), indent=2, sort_keys=True)
    if raw:
        print(text)
    else:
        console.print(Syntax(text, "json", theme="monokai", line_numbers=False))


def register_store_commands(app: typer.Typer) -> None:
    """Register store command group with the Typer app."""
    app.add_typer(store_app, name="store")
