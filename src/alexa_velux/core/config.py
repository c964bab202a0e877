"""Configuration models for alexa-velux.

The configuration file lives at `.alexa-velux/config.json` and only covers
local runtime concerns (where the store lives, how HTTP behaves, logging).
Backend settings such as endpoint URLs are data and live in the store under
the `settings` key.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from alexa_velux.core.models import SkillType
from alexa_velux.core.transport import DEFAULT_TIMEOUT

StoreBackend = Literal["json", "memory"]
LogLevelName = Literal["debug", "info", "warning", "error"]


class StoreConfig(BaseModel):
    """Where credentials and tokens are persisted."""

    backend: StoreBackend = Field(
        default="json",
        description="Store backend: json (file on disk) or memory (discarded on exit).",
    )
    path: str = Field(
        default=".alexa-velux/store.json",
        description="Path of the JSON store file, relative to the working directory.",
    )
    lock_timeout: float = Field(default=5.0, gt=0, description="Seconds to wait for the file lock.")


class SkillConfig(BaseModel):
    """Default skill deployment mode."""

    type: SkillType = Field(default=SkillType.CUSTOM, description="custom or smart_home.")


class HttpConfig(BaseModel):
    """Outbound HTTP behaviour."""

    timeout: float = Field(
        default=DEFAULT_TIMEOUT, ge=1.0, le=300.0, description="Request timeout in seconds."
    )
    verify_ssl: bool = Field(default=True, description="Verify backend SSL certificates.")


class LoggingConfig(BaseModel):
    level: LogLevelName = "warning"
    file: str | None = Field(default=None, description="Optional log file path.")


class AlexaVeluxConfig(BaseModel):
    """Root configuration object."""

    version: str = "1.0"
    store: StoreConfig = Field(default_factory=StoreConfig)
    skill: SkillConfig = Field(default_factory=SkillConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

