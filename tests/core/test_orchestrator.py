"""Tests for RetryOrchestrator - classification-driven token recovery."""

import asyncio

import httpx
import pytest

from alexa_velux.core.actions import HomeInfo, RunScenario
from alexa_velux.core.credential_store import CredentialStore
from alexa_velux.core.exceptions import AuthRequestError, TransportError
from alexa_velux.core.executor import Outcome, RequestExecutor
from alexa_velux.core.models import SkillType, TokenData
from alexa_velux.core.orchestrator import RetryOrchestrator
from alexa_velux.core.session import SessionContext
from alexa_velux.core.token_manager import TokenManager
from tests.helpers import (
    CUSTOM_USER,
    SMART_HOME_USER,
    USERNAME,
    expired_token_response,
    invalid_token_response,
)


@pytest.fixture
def orchestrator(transport, store) -> RetryOrchestrator:
    return RetryOrchestrator(
        RequestExecutor(transport), TokenManager(transport, CredentialStore(store))
    )


class TestSuccess:
    @pytest.mark.asyncio
    async def test_success_needs_no_grant(self, orchestrator, backend, ready_session):
        response = await orchestrator.request(ready_session, HomeInfo())

        assert response.json() == {"status": "ok"}
        assert len(backend.domain_requests) == 1
        assert backend.token_requests == []


class TestExpiredToken:
    """An expired access token is renewed with the refresh grant."""

    @pytest.mark.asyncio
    async def test_one_refresh_then_one_retry(self, orchestrator, backend, ready_session):
        backend.domain_responses.append(expired_token_response())

        response = await orchestrator.request(ready_session, RunScenario(scenario="close-all"))

        assert response.status_code == 200
        [token_request] = backend.token_requests
        assert backend.form(token_request) == {
            "grant_type": "refresh_token",
            "refresh_token": "stored-refresh",
        }
        first, retry = backend.domain_requests
        assert first.headers["Authorization"] == "Bearer stored-access"
        assert retry.headers["Authorization"] == "Bearer new-access-1"
        assert backend.payload(first) == backend.payload(retry)

    @pytest.mark.asyncio
    async def test_request_order(self, orchestrator, backend, ready_session):
        backend.domain_responses.append(expired_token_response())

        await orchestrator.request(ready_session, HomeInfo())

        paths = [r.url.path for r in backend.requests]
        assert paths == ["/api/homesdata", "/oauth2/token", "/api/homesdata"]


class TestInvalidToken:
    """A rejected access token needs a full password grant."""

    @pytest.mark.asyncio
    async def test_one_password_grant_then_one_retry(self, orchestrator, backend, ready_session):
        backend.domain_responses.append(invalid_token_response())

        response = await orchestrator.request(ready_session, HomeInfo())

        assert response.status_code == 200
        [token_request] = backend.token_requests
        assert backend.form(token_request)["grant_type"] == "password"
        assert backend.form(token_request)["username"] == USERNAME
        assert len(backend.domain_requests) == 2


class TestTerminalFailures:
    """Failures a token grant cannot fix propagate unchanged."""

    @pytest.mark.asyncio
    async def test_server_error_propagates_without_grant(
        self, orchestrator, backend, ready_session
    ):
        backend.domain_responses.append(httpx.Response(500, text="backend down"))

        with pytest.raises(TransportError) as exc_info:
            await orchestrator.request(ready_session, HomeInfo())

        assert exc_info.value.status_code == 500
        assert exc_info.value.response_body == "backend down"
        assert backend.token_requests == []
        assert len(backend.domain_requests) == 1

    @pytest.mark.asyncio
    async def test_unclassified_403_propagates_without_grant(
        self, orchestrator, backend, ready_session
    ):
        backend.domain_responses.append(
            httpx.Response(403, json={"error": {"code": 13, "message": "Forbidden"}})
        )

        result = await orchestrator.run(ready_session, HomeInfo())

        assert result.outcome is Outcome.TERMINAL
        assert backend.token_requests == []

    @pytest.mark.asyncio
    async def test_second_failure_is_returned_not_retried(
        self, orchestrator, backend, ready_session
    ):
        backend.domain_responses.extend([expired_token_response(), expired_token_response()])

        result = await orchestrator.run(ready_session, HomeInfo())

        assert result.outcome is Outcome.RECOVERABLE
        assert len(backend.token_requests) == 1
        assert len(backend.domain_requests) == 2
        with pytest.raises(TransportError) as exc_info:
            result.unwrap()
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_grant_failure_propagates_without_retry(
        self, orchestrator, backend, ready_session
    ):
        backend.domain_responses.append(expired_token_response())
        backend.token_responses.append(httpx.Response(400, json={"error": "invalid_grant"}))

        with pytest.raises(AuthRequestError) as exc_info:
            await orchestrator.request(ready_session, HomeInfo())

        assert exc_info.value.status_code == 400
        assert len(backend.domain_requests) == 1
        assert ready_session.token.access_token == "stored-access"


class TestCacheCoherence:
    @pytest.mark.asyncio
    async def test_later_requests_use_new_token_without_store_reads(
        self, orchestrator, backend, ready_session, store
    ):
        backend.domain_responses.append(expired_token_response())
        await orchestrator.request(ready_session, HomeInfo())
        store.calls.clear()

        await orchestrator.request(ready_session, HomeInfo())

        assert backend.domain_requests[-1].headers["Authorization"] == "Bearer new-access-1"
        assert [c for c in store.calls if c[0] in ("get", "query")] == []

    @pytest.mark.asyncio
    async def test_refreshed_token_persisted_for_custom(
        self, orchestrator, backend, ready_session, store
    ):
        backend.domain_responses.append(expired_token_response())
        await orchestrator.request(ready_session, HomeInfo())

        assert (await store.get(f"token-{CUSTOM_USER}"))["AccessToken"] == "new-access-1"

    @pytest.mark.asyncio
    async def test_refreshed_token_persisted_for_smart_home(
        self, orchestrator, backend, store, settings
    ):
        session = SessionContext(SMART_HOME_USER, SkillType.SMART_HOME)
        session.settings = settings
        await orchestrator.token_manager.credential_store.load_credentials(session)
        backend.domain_responses.append(expired_token_response())

        await orchestrator.request(session, HomeInfo())

        assert backend.form(backend.token_requests[0])["refresh_token"] == "sh-refresh"
        record = await store.get(f"config-{USERNAME}")
        assert record["AccessToken"] == "new-access-1"
        assert await store.get(f"token-{SMART_HOME_USER}") is None


class TestConcurrentRequests:
    """Requests sharing a session renew the token once."""

    @pytest.mark.asyncio
    async def test_single_grant_for_concurrent_expiry(self, store, settings, make_transport):
        token_calls = 0
        gate = asyncio.Event()

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal token_calls
            if request.url.path == "/oauth2/token":
                token_calls += 1
                return httpx.Response(
                    200, json={"access_token": "new-access", "refresh_token": "new-refresh"}
                )
            if request.headers["Authorization"] == "Bearer stored-access":
                # Hold both first attempts until each has been sent
                if not gate.is_set():
                    gate.set()
                    await asyncio.sleep(0)
                return expired_token_response()
            return httpx.Response(200, json={"status": "ok"})

        transport = make_transport(handler)
        orchestrator = RetryOrchestrator(
            RequestExecutor(transport), TokenManager(transport, CredentialStore(store))
        )
        session = SessionContext(CUSTOM_USER)
        session.settings = settings
        await orchestrator.token_manager.credential_store.load_credentials(session)
        await orchestrator.token_manager.credential_store.load_token(session)

        first, second = await asyncio.gather(
            orchestrator.request(session, HomeInfo()),
            orchestrator.request(session, HomeInfo()),
        )

        assert first.status_code == second.status_code == 200
        assert token_calls == 1
        assert session.token == TokenData(access_token="new-access", refresh_token="new-refresh")
