"""Pytest configuration and fixtures for alexa-velux tests."""

import logging
from collections.abc import Callable, Generator
from pathlib import Path
from tempfile import TemporaryDirectory
from typing import Any

import httpx
import pytest

from alexa_velux.core.models import Settings, SkillType, TokenData, UserCredentials
from alexa_velux.core.session import SessionContext
from alexa_velux.core.transport import HttpTransport
from tests.helpers import (
    BASE_URL,
    CUSTOM_USER,
    SMART_HOME_USER,
    SYNC_PATH,
    TOKEN_PATH,
    USERNAME,
    FakeBackend,
    RecordingStore,
)

# =============================================================================
# Directory Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# =============================================================================
# Record Fixtures
# =============================================================================


@pytest.fixture
def settings_data() -> dict[str, Any]:
    """Provide the settings record as stored."""
    return {
        "id": "settings",
        "base_url": BASE_URL,
        "token_url": TOKEN_PATH,
        "authorization": "Basic c2tpbGw6c2VjcmV0",
        "app_identifier": "com.velux.active",
        "device_model": "Alexa",
        "device_name": "Alexa Skill",
        "scope": "velux_scopes",
        "user_prefix": "velux",
        "sync_url": SYNC_PATH,
        "app_version": "1108002",
    }


@pytest.fixture
def credentials_data() -> dict[str, Any]:
    """Provide a Custom skill credential record as stored."""
    return {
        "id": f"config-{CUSTOM_USER}",
        "username": USERNAME,
        "password": "hunter2",
        "home_id": "home-1",
        "bridge": "bridge-1",
    }


@pytest.fixture
def token_data() -> dict[str, Any]:
    """Provide a Custom skill token record as stored."""
    return {
        "id": f"token-{CUSTOM_USER}",
        "AccessToken": "stored-access",
        "RefreshToken": "stored-refresh",
    }


@pytest.fixture
def smart_home_credentials_data() -> dict[str, Any]:
    """Provide a SmartHome credential record, linked and with its own tokens."""
    return {
        "id": f"config-{USERNAME}",
        "userId": SMART_HOME_USER,
        "username": USERNAME,
        "password": "hunter2",
        "home_id": "home-1",
        "bridge": "bridge-1",
        "AccessToken": "sh-access",
        "RefreshToken": "sh-refresh",
    }


@pytest.fixture
def settings(settings_data: dict[str, Any]) -> Settings:
    return Settings.model_validate(settings_data)


@pytest.fixture
def credentials(credentials_data: dict[str, Any]) -> UserCredentials:
    return UserCredentials.model_validate(credentials_data)


# =============================================================================
# Store Fixtures
# =============================================================================


@pytest.fixture
def store(
    settings_data: dict[str, Any],
    credentials_data: dict[str, Any],
    token_data: dict[str, Any],
    smart_home_credentials_data: dict[str, Any],
) -> RecordingStore:
    """Provide a store seeded with settings, Custom and SmartHome records."""
    return RecordingStore(
        {
            record["id"]: record
            for record in (settings_data, credentials_data, token_data, smart_home_credentials_data)
        }
    )


@pytest.fixture
def empty_store() -> RecordingStore:
    return RecordingStore()


# =============================================================================
# Session Fixtures
# =============================================================================


@pytest.fixture
def custom_session() -> SessionContext:
    return SessionContext(session_user_id=CUSTOM_USER, skill_type=SkillType.CUSTOM)


@pytest.fixture
def smart_home_session() -> SessionContext:
    return SessionContext(session_user_id=SMART_HOME_USER, skill_type=SkillType.SMART_HOME)


@pytest.fixture
def ready_session(settings: Settings, credentials: UserCredentials) -> SessionContext:
    """Provide a warmed-up Custom session holding the stored token."""
    session = SessionContext(session_user_id=CUSTOM_USER)
    session.settings = settings
    session.credentials = credentials
    session.token = TokenData(access_token="stored-access", refresh_token="stored-refresh")
    return session


# =============================================================================
# Backend Fixtures
# =============================================================================


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_transport() -> Callable[[Callable[[httpx.Request], httpx.Response]], HttpTransport]:
    """Build an HttpTransport whose client answers through ``handler``."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> HttpTransport:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpTransport(client=client)

    return _make


@pytest.fixture
def transport(backend: FakeBackend, make_transport) -> HttpTransport:
    return make_transport(backend.handler)


# =============================================================================
# Logging Fixtures
# =============================================================================


@pytest.fixture
def restore_root_logger() -> Generator[None, None, None]:
    """Restore root logger handlers replaced by setup_logging."""
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
