"""Domain actions and the request bodies they send.

Each action is a small frozen dataclass carrying its own fields.
``build_request`` turns an action plus the session into the endpoint path
and JSON payload.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from alexa_velux.core.exceptions import IncompleteSessionError
from alexa_velux.core.models import Settings, UserCredentials


@dataclass(frozen=True)
class RunScenario:
    """Run a stored scenario (e.g. open or close windows) on the user's bridge."""

    scenario: str

    name = "run-scenario"


@dataclass(frozen=True)
class HomeInfo:
    """Fetch the home topology with synced measurements."""

    name = "home-info"


@dataclass(frozen=True)
class HomeStatus:
    """Fetch the live status of a home; defaults to the user's home."""

    home_id: str | None = None

    name = "home-status"


Action = RunScenario | HomeInfo | HomeStatus


@dataclass(frozen=True)
class DomainRequest:
    path: str
    payload: dict[str, Any]


def build_request(
    action: Action, settings: Settings, credentials: UserCredentials
) -> DomainRequest:
    """Build the endpoint path and payload for an action.

    Raises:
        IncompleteSessionError: If the credentials lack the home data the action needs.
    """
    match action:
        case RunScenario(scenario=scenario):
            required = (("home_id", credentials.home_id), ("bridge", credentials.bridge))
            missing = [name for name, value in required if not value]
            if missing:
                raise IncompleteSessionError(missing, action.name)
            return DomainRequest(
                path=settings.sync_url,
                payload={
                    "home": {
                        "id": credentials.home_id,
                        "modules": [
                            {
                                "scenario": scenario,
                                "bridge": credentials.bridge,
                                "id": credentials.bridge,
                            }
                        ],
                    },
                    "app_version": settings.app_version,
                },
            )
        case HomeInfo():
            return DomainRequest(
                path=settings.homesdata_url,
                payload={
                    "app_version": settings.app_version,
                    "app_type": settings.app_type,
                    "sync_measurements": True,
                },
            )
        case HomeStatus(home_id=home_id):
            home_id = home_id or credentials.home_id
            if not home_id:
                raise IncompleteSessionError(["home_id"], action.name)
            return DomainRequest(
                path=settings.homestatus_url,
                payload={"app_version": settings.app_version, "home_id": home_id},
            )
        case _:
            raise TypeError(f"Unknown action: {action!r}")
