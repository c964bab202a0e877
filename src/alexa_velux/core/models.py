"""Data models for settings, credentials, tokens and backend responses."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError

# =============================================================================
# Enums
# =============================================================================


class SkillType(str, Enum):
    """Deployment mode of the skill.

    Determines how the calling identity is resolved and where tokens persist.
    """

    CUSTOM = "custom"
    SMART_HOME = "smart_home"


class GrantType(str, Enum):
    """OAuth grant types understood by the authorization endpoint."""

    PASSWORD = "password"
    REFRESH_TOKEN = "refresh_token"


# =============================================================================
# Stored Records
# =============================================================================


class Settings(BaseModel):
    """Backend endpoints, client identifiers and device metadata.

    Stored under the fixed ``settings`` key and immutable once loaded.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    base_url: str
    token_url: str
    authorization: str
    app_identifier: str
    device_model: str
    device_name: str
    scope: str
    user_prefix: str
    sync_url: str
    app_version: str
    app_type: str = "app_velux"
    homesdata_url: str = "/api/homesdata"
    homestatus_url: str = "/syncapi/v1/homestatus"


class TokenData(BaseModel):
    """Access/refresh token pair as stored in the key-value store."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    access_token: str = Field(alias="AccessToken")
    refresh_token: str = Field(alias="RefreshToken")


class UserCredentials(BaseModel):
    """Per-user login and home configuration.

    SmartHome records also carry the current token pair, so the token fields
    are optional here.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    username: str
    password: str
    home_id: str | None = None
    bridge: str | None = None
    access_token: str | None = Field(default=None, alias="AccessToken")
    refresh_token: str | None = Field(default=None, alias="RefreshToken")

    @property
    def token(self) -> TokenData | None:
        """Token pair embedded in the record, if complete."""
        if self.access_token and self.refresh_token:
            return TokenData(access_token=self.access_token, refresh_token=self.refresh_token)
        return None


# =============================================================================
# Backend Responses
# =============================================================================


class TokenResponse(BaseModel):
    """Successful response of the authorization endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str
    expires_in: int | None = None
    scope: list[str] | str | None = None

    def to_token_data(self) -> TokenData:
        return TokenData(access_token=self.access_token, refresh_token=self.refresh_token)


class ErrorDetail(BaseModel):
    code: StrictInt
    message: str = ""


class ErrorResponse(BaseModel):
    """Error body returned by domain endpoints on authorization failure."""

    model_config = ConfigDict(extra="ignore")

    error: ErrorDetail

    @classmethod
    def parse(cls, body: Any) -> ErrorResponse | None:
        """Parse an error body, returning None when it has another shape."""
        if not isinstance(body, dict):
            return None
        try:
            return cls.model_validate(body)
        except ValidationError:
            return None
