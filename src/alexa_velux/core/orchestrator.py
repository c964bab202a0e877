"""Retry Orchestrator - at most one silent re-authentication per request.

State machine per logical request:

    ATTEMPTING --(recoverable 403, grant succeeded)--> RETRIED
    RETRIED is terminal: the replay's outcome is final.

An expired token (error code 3) is fixed with a cheap refresh grant; an
invalid token (error code 2) needs a full password grant. Any other failure
propagates unchanged, and so does a failing grant.
"""

from __future__ import annotations

import logging
from enum import Enum

import httpx

from alexa_velux.core.actions import Action
from alexa_velux.core.executor import AttemptResult, Outcome, RequestExecutor
from alexa_velux.core.session import SessionContext
from alexa_velux.core.token_manager import TokenManager

logger = logging.getLogger(__name__)


class RetryState(Enum):
    ATTEMPTING = "attempting"
    RETRIED = "retried"


class RetryOrchestrator:
    """Wraps the executor with classification-driven token recovery."""

    def __init__(self, executor: RequestExecutor, token_manager: TokenManager):
        self.executor = executor
        self.token_manager = token_manager

    async def run(self, session: SessionContext, action: Action) -> AttemptResult:
        """Execute ``action``, recovering once from a token failure.

        Returns:
            The final AttemptResult: the first attempt's result when it was
            not recoverable, otherwise the replay's.

        Raises:
            AuthRequestError: If the recovery grant fails.
            IncompleteSessionError: If the session is not warmed up.
        """
        state = RetryState.ATTEMPTING
        result = await self.executor.execute(session, action)

        if result.outcome is not Outcome.RECOVERABLE:
            return result

        assert result.grant_type is not None
        async with session.refresh_lock:
            current = session.token
            if current is not None and current.access_token != result.access_token:
                # Another request renewed the token while this one was in flight
                logger.info("Token already renewed, skipping %s grant", result.grant_type.value)
            else:
                logger.info(
                    "Access token %s, requesting %s token",
                    result.failure.value if result.failure else "rejected",
                    result.grant_type.value,
                )
                await self.token_manager.request_token(session, result.grant_type)

        state = RetryState.RETRIED
        logger.info("Retrying %s request (%s)", action.name, state.value)
        return await self.executor.execute(session, action)

    async def request(self, session: SessionContext, action: Action) -> httpx.Response:
        """Execute ``action`` and return the response, raising the root-cause error."""
        result = await self.run(session, action)
        return result.unwrap()
