"""Velux skill client - warm-up and domain actions over one store and transport.

Example:
    >>> store = JsonFileStore(Path(".alexa-velux/store.json"))
    >>> async with VeluxSkillClient(store) as client:
    ...     session = client.new_session("amzn1.ask.account.XYZ")
    ...     await client.warm_up(session)
    ...     await client.run_scenario(session, "close-all")
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from alexa_velux.core.actions import Action, HomeInfo, HomeStatus, RunScenario
from alexa_velux.core.config import AlexaVeluxConfig
from alexa_velux.core.credential_store import CredentialStore
from alexa_velux.core.executor import RequestExecutor
from alexa_velux.core.models import GrantType, SkillType
from alexa_velux.core.orchestrator import RetryOrchestrator
from alexa_velux.core.session import SessionContext
from alexa_velux.core.store import InMemoryStore, JsonFileStore, KeyValueStore
from alexa_velux.core.token_manager import TokenManager
from alexa_velux.core.transport import HttpTransport

logger = logging.getLogger(__name__)


def create_store(config: AlexaVeluxConfig, working_dir: Path | None = None) -> KeyValueStore:
    """Build the store backend selected in the configuration."""
    if config.store.backend == "memory":
        return InMemoryStore()
    path = Path(config.store.path)
    if not path.is_absolute():
        path = (working_dir or Path.cwd()) / path
    return JsonFileStore(path, lock_timeout=config.store.lock_timeout)


class VeluxSkillClient:
    """Facade wiring the credential store, token manager and retry orchestrator."""

    def __init__(
        self,
        store: KeyValueStore,
        transport: HttpTransport | None = None,
        default_skill_type: SkillType = SkillType.CUSTOM,
    ):
        self.transport = transport or HttpTransport()
        self.credential_store = CredentialStore(store)
        self.token_manager = TokenManager(self.transport, self.credential_store)
        self.executor = RequestExecutor(self.transport)
        self.orchestrator = RetryOrchestrator(self.executor, self.token_manager)
        self.default_skill_type = default_skill_type

    @classmethod
    def from_config(
        cls, config: AlexaVeluxConfig, working_dir: Path | None = None
    ) -> VeluxSkillClient:
        transport = HttpTransport(timeout=config.http.timeout, verify_ssl=config.http.verify_ssl)
        return cls(
            create_store(config, working_dir),
            transport=transport,
            default_skill_type=config.skill.type,
        )

    def new_session(
        self, session_user_id: str, skill_type: SkillType | None = None
    ) -> SessionContext:
        return SessionContext(
            session_user_id=session_user_id,
            skill_type=skill_type or self.default_skill_type,
        )

    # -------------------------------------------------------------------------
    # Warm-up
    # -------------------------------------------------------------------------

    async def warm_up(self, session: SessionContext) -> SessionContext:
        """Populate the session from cache or store.

        Loads settings, then credentials, then the token. When credentials
        exist but no token is stored, a password grant obtains one.

        Raises:
            ConfigurationMissing: If settings are absent; nothing else is looked up.
            AuthRequestError: If the fallback password grant fails.
            PersistenceError: If the store cannot be read.
        """
        await self.credential_store.load_settings(session)

        credentials = await self.credential_store.load_credentials(session)
        if credentials is None:
            return session

        token = await self.credential_store.load_token(session)
        if token is None:
            logger.info("No token found in store, trying Velux backend...")
            await self.token_manager.request_token(session, GrantType.PASSWORD)

        return session

    # -------------------------------------------------------------------------
    # Domain actions
    # -------------------------------------------------------------------------

    async def perform(self, session: SessionContext, action: Action) -> httpx.Response:
        """Run an action with token recovery, warming the session up first if needed."""
        if not session.is_ready:
            await self.warm_up(session)
        return await self.orchestrator.request(session, action)

    async def run_scenario(self, session: SessionContext, scenario: str) -> Any:
        response = await self.perform(session, RunScenario(scenario=scenario))
        return _decode(response)

    async def home_info(self, session: SessionContext) -> Any:
        response = await self.perform(session, HomeInfo())
        return _decode(response)

    async def home_status(self, session: SessionContext, home_id: str | None = None) -> Any:
        response = await self.perform(session, HomeStatus(home_id=home_id))
        return _decode(response)

    async def link_account(self, code: str, user_id: str) -> None:
        await self.credential_store.link_account(code, user_id)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def aclose(self) -> None:
        await self.transport.aclose()

    async def __aenter__(self) -> VeluxSkillClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
