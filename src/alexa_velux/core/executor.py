"""Request Executor - one authenticated attempt at a domain action.

The executor never repairs the session and never retries. It reports the
outcome of a single attempt as an AttemptResult, classifying authorization
failures so the retry orchestrator can decide what to do without
re-inspecting exceptions.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from alexa_velux.core.actions import Action, build_request
from alexa_velux.core.exceptions import (
    AuthorizationFailure,
    IncompleteSessionError,
    TransportError,
)
from alexa_velux.core.models import ErrorResponse, GrantType
from alexa_velux.core.session import SessionContext
from alexa_velux.core.transport import HttpTransport

logger = logging.getLogger(__name__)

# The Velux backend answers token problems with 403, not 401
UNAUTHORIZED_STATUS = 403
EXPIRED_TOKEN_CODE = 3
INVALID_TOKEN_CODE = 2

RECOVERY_GRANTS: dict[AuthorizationFailure, GrantType] = {
    AuthorizationFailure.EXPIRED: GrantType.REFRESH_TOKEN,
    AuthorizationFailure.INVALID: GrantType.PASSWORD,
}


class Outcome(Enum):
    """Outcome of a single request attempt."""

    SUCCESS = "success"
    RECOVERABLE = "recoverable"  # token problem a grant can fix
    TERMINAL = "terminal"  # anything else


@dataclass
class AttemptResult:
    """Result of one attempt.

    Attributes:
        outcome: Success, recoverable failure or terminal failure.
        response: The HTTP response on success.
        error: The failure, for non-success outcomes.
        failure: Classification of a 403, if the failure was one.
        grant_type: Grant that should fix a recoverable failure.
        access_token: The access token the attempt was sent with.
    """

    outcome: Outcome
    response: httpx.Response | None = None
    error: TransportError | None = None
    failure: AuthorizationFailure | None = None
    grant_type: GrantType | None = None
    access_token: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS

    def unwrap(self) -> httpx.Response:
        """Return the response, or raise the stored error."""
        if self.response is not None and self.ok:
            return self.response
        assert self.error is not None
        raise self.error


def classify_failure(status_code: int | None, body: Any) -> AuthorizationFailure | None:
    """Classify a failed domain response.

    Returns:
        None for anything but a 403; otherwise EXPIRED for error code 3,
        INVALID for error code 2 and OTHER for any other or unparsable body.
    """
    if status_code != UNAUTHORIZED_STATUS:
        return None

    error_response = ErrorResponse.parse(body)
    if error_response is None:
        return AuthorizationFailure.OTHER
    if error_response.error.code == EXPIRED_TOKEN_CODE:
        return AuthorizationFailure.EXPIRED
    if error_response.error.code == INVALID_TOKEN_CODE:
        return AuthorizationFailure.INVALID
    return AuthorizationFailure.OTHER


def _decode_body(raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return None


class RequestExecutor:
    """Builds and sends one authenticated domain request."""

    def __init__(self, transport: HttpTransport):
        self.transport = transport

    async def execute(self, session: SessionContext, action: Action) -> AttemptResult:
        """Send ``action`` once with the session's current token.

        Raises:
            IncompleteSessionError: If settings, credentials or token are missing.
        """
        missing = session.missing()
        if missing:
            raise IncompleteSessionError(missing, action.name)

        settings = session.settings
        credentials = session.credentials
        token = session.token
        assert settings is not None and credentials is not None and token is not None

        request = build_request(action, settings, credentials)
        url = settings.base_url + request.path
        headers = {"Authorization": f"Bearer {token.access_token}"}

        logger.info("Sending %s request", action.name)
        try:
            response = await self.transport.post_json(url, request.payload, headers)
        except TransportError as e:
            failure = classify_failure(e.status_code, _decode_body(e.response_body))
            if failure is not None and failure.recoverable:
                logger.info("%s request rejected: access token %s", action.name, failure.value)
                return AttemptResult(
                    outcome=Outcome.RECOVERABLE,
                    error=e,
                    failure=failure,
                    grant_type=RECOVERY_GRANTS[failure],
                    access_token=token.access_token,
                )
            logger.warning("%s request failed: %s", action.name, e.message)
            return AttemptResult(
                outcome=Outcome.TERMINAL,
                error=e,
                failure=failure,
                access_token=token.access_token,
            )

        return AttemptResult(
            outcome=Outcome.SUCCESS, response=response, access_token=token.access_token
        )
