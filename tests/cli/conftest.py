"""Shared fixtures for CLI command tests."""

import json
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from alexa_velux.core.config_loader import ENV_OVERRIDES, reset_config
from alexa_velux.core.transport import HttpTransport


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Typer CLI test runner."""
    return CliRunner()


@pytest.fixture
def workdir(temp_dir: Path, monkeypatch, restore_root_logger) -> Generator[Path, None, None]:
    """Run the CLI from an empty working directory with a fresh config."""
    monkeypatch.chdir(temp_dir)
    for override in ENV_OVERRIDES:
        monkeypatch.delenv(override.env_var, raising=False)
    reset_config()
    yield temp_dir
    reset_config()


@pytest.fixture
def store_file(workdir: Path) -> Path:
    return workdir / ".alexa-velux" / "store.json"


@pytest.fixture
def settings_file(workdir: Path, settings_data: dict[str, Any]) -> Path:
    path = workdir / "settings.json"
    path.write_text(json.dumps({k: v for k, v in settings_data.items() if k != "id"}))
    return path


@pytest.fixture
def credentials_file(workdir: Path, credentials_data: dict[str, Any]) -> Path:
    path = workdir / "credentials.json"
    path.write_text(json.dumps({k: v for k, v in credentials_data.items() if k != "id"}))
    return path


@pytest.fixture
def patched_transport(monkeypatch, transport: HttpTransport) -> HttpTransport:
    """Route the CLI's HTTP traffic to the fake backend."""
    monkeypatch.setattr("alexa_velux.core.client.HttpTransport", lambda **kwargs: transport)
    return transport
