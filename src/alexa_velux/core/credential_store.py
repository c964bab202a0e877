"""Credential Store - read-through persistence of settings, credentials and tokens.

Every lookup first consults the SessionContext; only a cache miss reaches the
backing KeyValueStore, and the loaded record is cached on the session.

Key layout:
    settings                  settings record (fixed key)
    config-<id>               user credentials; <id> is the session user id for
                              Custom skills and the username for SmartHome skills
    token-<session user id>   token pair (Custom skills only)

SmartHome credential records carry a ``userId`` attribute and their own token
pair. The calling identity is resolved through the ``userId-index`` secondary
index instead of being used as a key directly.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from alexa_velux.core.exceptions import ConfigurationMissing, PersistenceError
from alexa_velux.core.models import Settings, SkillType, TokenData, UserCredentials
from alexa_velux.core.session import SessionContext
from alexa_velux.core.store import KEY_ATTRIBUTE, KeyValueStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "settings"
CREDENTIALS_PREFIX = "config-"
TOKEN_PREFIX = "token-"
USER_ID_INDEX = "userId-index"
USER_ID_ATTRIBUTE = "userId"

ModelT = TypeVar("ModelT", bound=BaseModel)


def credentials_key(user: str) -> str:
    return f"{CREDENTIALS_PREFIX}{user}"


def token_key(session_user_id: str) -> str:
    return f"{TOKEN_PREFIX}{session_user_id}"


def _validate(model: type[ModelT], data: dict[str, Any], key: str) -> ModelT:
    """Parse a stored record, mapping validation errors to PersistenceError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        missing_fields = []
        invalid_fields = []
        for error in e.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            if error["type"] == "missing":
                missing_fields.append(field)
            else:
                invalid_fields.append(f"{field}: {error['msg']}")

        details_parts = []
        if missing_fields:
            details_parts.append(f"Missing required fields: {', '.join(missing_fields)}")
        if invalid_fields:
            details_parts.append(f"Invalid fields: {'; '.join(invalid_fields)}")

        raise PersistenceError(
            f"Stored record '{key}' has invalid structure",
            key=key,
            details=" | ".join(details_parts) if details_parts else str(e),
        ) from e


class CredentialStore:
    """Read-through access to settings, credentials and tokens."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    # -------------------------------------------------------------------------
    # Raw contract
    # -------------------------------------------------------------------------

    async def load(self, key: str) -> dict[str, Any] | None:
        """Load a raw record, or None when the key is not found."""
        return await self.store.get(key)

    async def save(self, item: dict[str, Any]) -> None:
        """Upsert a raw record keyed by its ``id`` attribute."""
        await self.store.put(item)

    async def find_key_by_attribute(self, index: str, attribute: str, value: Any) -> str | None:
        """Resolve a secondary attribute value to the owning record's key."""
        key = await self.store.query(index, attribute, value)
        if key is None:
            logger.debug("No record in %s with %s=%s", index, attribute, value)
        return key

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def load_settings(self, session: SessionContext) -> Settings:
        """Return the session's settings, loading them on first use.

        Raises:
            ConfigurationMissing: If the settings record does not exist.
            PersistenceError: If the record cannot be read or parsed.
        """
        if session.settings is not None:
            logger.debug("Using cached %s data", SETTINGS_KEY)
            return session.settings

        logger.info("Loading %s data from store...", SETTINGS_KEY)
        data = await self.load(SETTINGS_KEY)
        if data is None:
            logger.error("Settings record '%s' not found, aborting", SETTINGS_KEY)
            raise ConfigurationMissing(SETTINGS_KEY)

        settings = _validate(Settings, data, SETTINGS_KEY)
        session.settings = settings
        return settings

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    async def resolve_credentials_key(self, session: SessionContext) -> str | None:
        """Find the store key of the session's credential record."""
        if session.credential_key is not None:
            return session.credential_key

        if session.skill_type is SkillType.SMART_HOME:
            key = await self.find_key_by_attribute(
                USER_ID_INDEX, USER_ID_ATTRIBUTE, session.session_user_id
            )
        else:
            key = credentials_key(session.session_user_id)

        session.credential_key = key
        return key

    async def load_credentials(self, session: SessionContext) -> UserCredentials | None:
        """Return the session's credentials, loading them on first use.

        A missing record is not an error: the user has not finished setup yet.
        """
        if session.credentials is not None:
            logger.debug("Using cached credentials for %s", session.session_user_id)
            return session.credentials

        key = await self.resolve_credentials_key(session)
        data = await self.load(key) if key is not None else None
        if data is None:
            logger.warning(
                "No credentials found for user %s (%s skill); setup is not complete",
                session.session_user_id,
                session.skill_type.value,
            )
            return None

        assert key is not None
        credentials = _validate(UserCredentials, data, key)
        session.credentials = credentials
        return credentials

    # -------------------------------------------------------------------------
    # Tokens
    # -------------------------------------------------------------------------

    async def load_token(self, session: SessionContext) -> TokenData | None:
        """Return the session's token, loading it on first use.

        Returns None when no token is stored; the caller decides whether to
        request one. Credentials must be loaded first.
        """
        if session.token is not None:
            logger.debug("Using cached token for %s", session.session_user_id)
            return session.token

        if session.credentials is None:
            return None

        if session.skill_type is SkillType.SMART_HOME:
            # SmartHome tokens live in the credential record, already loaded
            return None

        key = token_key(session.session_user_id)
        data = await self.load(key)
        if data is None:
            logger.info("No token stored under %s", key)
            return None

        token = _validate(TokenData, data, key)
        session.token = token
        return token

    async def persist_token(self, session: SessionContext, token: TokenData) -> None:
        """Persist a freshly issued token using the session's routing rule.

        Custom skills upsert a token record keyed by session user id.
        SmartHome skills update the existing credential record keyed by
        username; the update fails if that record does not exist.

        Raises:
            PersistenceError: If the write fails or the SmartHome credential
                record was resolved under a key other than its username key.
            ConditionalCheckFailedError: If the SmartHome record is absent.
        """
        fields = token.model_dump(by_alias=True)

        if session.skill_type is SkillType.SMART_HOME:
            if session.credentials is None:
                raise PersistenceError(
                    "Cannot persist a SmartHome token without credentials",
                    details="The credential record is keyed by username.",
                )
            key = credentials_key(session.credentials.username)
            if session.credential_key is not None and session.credential_key != key:
                raise PersistenceError(
                    f"Credential record '{session.credential_key}' is not keyed by username",
                    key=session.credential_key,
                    details=f"SmartHome tokens are persisted under '{key}'.",
                )
            await self.store.update(key, fields, must_exist=True)
        else:
            key = token_key(session.session_user_id)
            await self.save({KEY_ATTRIBUTE: key, **fields})

        logger.info("Persisted token under %s", key)

    # -------------------------------------------------------------------------
    # Account linking
    # -------------------------------------------------------------------------

    async def link_account(self, code: str, user_id: str) -> None:
        """Attach a platform user id to the credential record stored under ``code``.

        SmartHome tokens are persisted to ``config-<username>``, so only a
        record stored under that key can be linked. Other attributes are kept.

        Raises:
            PersistenceError: If no record exists under ``code`` or the key
                does not match the record's username.
        """
        data = await self.load(code)
        if data is None:
            raise PersistenceError(f"No record stored under '{code}'", key=code)

        credentials = _validate(UserCredentials, data, code)
        expected_key = credentials_key(credentials.username)
        if code != expected_key:
            raise PersistenceError(
                f"Cannot link '{code}': credential records must be keyed '{expected_key}'",
                key=code,
                details="Tokens for linked accounts are persisted under the username key.",
            )

        await self.store.update(code, {USER_ID_ATTRIBUTE: user_id}, must_exist=True)
        logger.info("Linked user %s to %s", user_id, code)
