"""Session context - the per-session cache consulted by every request.

A SessionContext is created empty by the caller, filled by warm-up and
passed by reference into the credential store, token manager, executor and
retry orchestrator. Nothing in the core deletes it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any

from alexa_velux.core.exceptions import IncompleteSessionError, VeluxError
from alexa_velux.core.models import Settings, SkillType, TokenData, UserCredentials

SECRET_MASK = "***"


@dataclass
class SessionContext:
    """Cached settings, credentials and token of one calling session.

    Attributes:
        session_user_id: Opaque identifier of the calling user/session.
        skill_type: Identity resolution and persistence routing strategy.
            Fixed for the lifetime of the session.
        credential_key: Store key of the credential record in use, once resolved.
        refresh_lock: Serializes token grants issued for this session.
    """

    session_user_id: str
    skill_type: SkillType = SkillType.CUSTOM
    credential_key: str | None = None
    _settings: Settings | None = field(default=None, repr=False)
    _credentials: UserCredentials | None = field(default=None, repr=False)
    _token: TokenData | None = field(default=None, repr=False)
    refresh_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.session_user_id:
            raise ValueError("session_user_id cannot be empty")
        self.skill_type = SkillType(self.skill_type)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    @property
    def settings(self) -> Settings | None:
        return self._settings

    @settings.setter
    def settings(self, value: Settings) -> None:
        if self._settings is not None and value != self._settings:
            raise VeluxError(
                "Settings are already loaded for this session",
                "Settings are immutable after the first load.",
            )
        self._settings = value

    # -------------------------------------------------------------------------
    # Credentials and token
    # -------------------------------------------------------------------------

    @property
    def credentials(self) -> UserCredentials | None:
        return self._credentials

    @credentials.setter
    def credentials(self, value: UserCredentials | None) -> None:
        self._credentials = value
        if value is None:
            self._token = None
        elif value.token is not None:
            self._token = value.token
        elif self._token is not None:
            self._sync_credentials_token(self._token)

    @property
    def token(self) -> TokenData | None:
        """Current token pair; only ever present together with credentials."""
        return self._token

    @token.setter
    def token(self, value: TokenData) -> None:
        if self._credentials is None:
            raise IncompleteSessionError(["credentials"], "storing a token")
        self._token = value
        self._sync_credentials_token(value)

    def _sync_credentials_token(self, token: TokenData) -> None:
        assert self._credentials is not None
        self._credentials = self._credentials.model_copy(
            update={"access_token": token.access_token, "refresh_token": token.refresh_token}
        )

    # -------------------------------------------------------------------------
    # Checks
    # -------------------------------------------------------------------------

    def missing(self) -> list[str]:
        """Names of the parts a domain request needs but the session lacks."""
        missing = []
        if self._settings is None:
            missing.append("settings")
        if self._credentials is None:
            missing.append("credentials")
        if self._token is None:
            missing.append("token")
        return missing

    @property
    def is_ready(self) -> bool:
        return not self.missing()

    def require_settings(self) -> Settings:
        if self._settings is None:
            raise IncompleteSessionError(["settings"])
        return self._settings

    def to_display_dict(self) -> dict[str, Any]:
        """Session contents with secrets masked, for logs and the CLI."""
        credentials = None
        if self._credentials is not None:
            credentials = {
                "username": self._credentials.username,
                "password": SECRET_MASK,
                "home_id": self._credentials.home_id,
                "bridge": self._credentials.bridge,
            }
        return {
            "session_user_id": self.session_user_id,
            "skill_type": self.skill_type.value,
            "credential_key": self.credential_key,
            "settings_loaded": self._settings is not None,
            "credentials": credentials,
            "token": _mask_token(self._token),
        }


def _mask_token(token: TokenData | None) -> dict[str, str] | None:
    if token is None:
        return None
    return {
        "access_token": token.access_token[:6] + SECRET_MASK,
        "refresh_token": token.refresh_token[:6] + SECRET_MASK,
    }
