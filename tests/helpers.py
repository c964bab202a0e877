"""Shared constants and the fake Velux backend used across tests."""

import json
import re
from typing import Any
from urllib.parse import parse_qsl

import httpx

from alexa_velux.core.store import InMemoryStore

BASE_URL = "https://velux.test"
TOKEN_PATH = "/oauth2/token"
SYNC_PATH = "/syncapi/v1/setstate"

CUSTOM_USER = "amzn1.ask.account.CUSTOM"
SMART_HOME_USER = "amzn1.ask.account.SMARTHOME"
USERNAME = "alice@example.com"


def expired_token_response() -> httpx.Response:
    return httpx.Response(403, json={"error": {"code": 3, "message": "Access token expired"}})


def invalid_token_response() -> httpx.Response:
    return httpx.Response(403, json={"error": {"code": 2, "message": "Invalid access token"}})


class FakeBackend:
    """Scriptable stand-in for the Velux backend behind an httpx.MockTransport.

    Token requests answer with queued responses, or issue a numbered token
    pair when the queue is empty. Domain requests do the same with a
    ``{"status": "ok"}`` default.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.token_responses: list[httpx.Response] = []
        self.domain_responses: list[httpx.Response] = []
        self.issued = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == TOKEN_PATH:
            if self.token_responses:
                return self.token_responses.pop(0)
            self.issued += 1
            return httpx.Response(
                200,
                json={
                    "access_token": f"new-access-{self.issued}",
                    "refresh_token": f"new-refresh-{self.issued}",
                    "expires_in": 10800,
                },
            )
        if self.domain_responses:
            return self.domain_responses.pop(0)
        return httpx.Response(200, json={"status": "ok"})

    @property
    def token_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == TOKEN_PATH]

    @property
    def domain_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != TOKEN_PATH]

    @staticmethod
    def form(request: httpx.Request) -> dict[str, str]:
        return dict(parse_qsl(request.content.decode()))

    @staticmethod
    def payload(request: httpx.Request) -> Any:
        return json.loads(request.content)


class RecordingStore(InMemoryStore):
    """InMemoryStore that records every operation as ``(name, key)``."""

    def __init__(self, records: dict[str, dict[str, Any]] | None = None) -> None:
        super().__init__(records)
        self.calls: list[tuple[str, Any]] = []

    async def get(self, key: str) -> dict[str, Any] | None:
        self.calls.append(("get", key))
        return await super().get(key)

    async def put(self, item: dict[str, Any]) -> None:
        self.calls.append(("put", item.get("id")))
        await super().put(item)

    async def update(
        self, key: str, fields: dict[str, Any], must_exist: bool = False
    ) -> dict[str, Any]:
        self.calls.append(("update", key))
        return await super().update(key, fields, must_exist)

    async def query(self, index: str, attribute: str, value: Any) -> str | None:
        self.calls.append(("query", value))
        return await super().query(index, attribute, value)


def strip_ansi(text: str) -> str:
    """Remove ANSI escape codes from text."""
    return re.sub(r"\x1b\[[0-9;]*m", "", text)
