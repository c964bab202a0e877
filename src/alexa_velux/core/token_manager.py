"""Token Manager - password and refresh-token grants against the Velux backend."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from alexa_velux.core.credential_store import CredentialStore
from alexa_velux.core.exceptions import (
    AuthRequestError,
    ConfigurationMissing,
    IncompleteSessionError,
    PersistenceError,
    TransportError,
)
from alexa_velux.core.logger import format_params
from alexa_velux.core.models import GrantType, TokenData, TokenResponse
from alexa_velux.core.session import SessionContext
from alexa_velux.core.transport import HttpTransport

logger = logging.getLogger(__name__)


class TokenManager:
    """Obtains tokens for a session and keeps the session and store in sync."""

    def __init__(self, transport: HttpTransport, credential_store: CredentialStore):
        self.transport = transport
        self.credential_store = credential_store

    def build_body(self, session: SessionContext, grant_type: GrantType) -> dict[str, str]:
        """Build the form body for a grant.

        Raises:
            ConfigurationMissing: If settings are not loaded.
            IncompleteSessionError: If the credentials or token the grant needs are missing.
        """
        settings = session.settings
        if settings is None:
            raise ConfigurationMissing("settings")

        if grant_type is GrantType.PASSWORD:
            if session.credentials is None:
                raise IncompleteSessionError(["credentials"], "a password grant")
            return {
                "grant_type": grant_type.value,
                "app_identifier": settings.app_identifier,
                "device_model": settings.device_model,
                "device_name": settings.device_name,
                "password": session.credentials.password,
                "scope": settings.scope,
                "user_prefix": settings.user_prefix,
                "username": session.credentials.username,
            }

        if session.token is None:
            raise IncompleteSessionError(["token"], "a refresh grant")
        return {
            "grant_type": grant_type.value,
            "refresh_token": session.token.refresh_token,
        }

    async def request_token(self, session: SessionContext, grant_type: GrantType) -> TokenData:
        """Request a new token and store it on the session and in the store.

        The session token is only replaced once the new token has been
        persisted, so a failure leaves the session as it was.

        Args:
            session: The session to obtain a token for.
            grant_type: Password (full re-authentication) or refresh.

        Returns:
            TokenData: The newly issued token.

        Raises:
            ConfigurationMissing: If settings are not loaded.
            IncompleteSessionError: If the grant's inputs are missing.
            AuthRequestError: If the grant fails at the transport or persistence layer.
        """
        grant_type = GrantType(grant_type)
        body = self.build_body(session, grant_type)
        settings = session.require_settings()
        url = settings.base_url + settings.token_url
        headers = {"Authorization": settings.authorization}

        logger.info("Requesting %s token from Velux backend...", grant_type.value)
        logger.debug("Token request body: %s", format_params(body))

        try:
            data = await self.transport.post_form(url, body, headers)
        except TransportError as e:
            logger.error("The %s token request failed: %s", grant_type.value, e.message)
            raise AuthRequestError(grant_type, e.message, e.status_code) from e

        try:
            token = TokenResponse.model_validate(data).to_token_data()
        except ValidationError as e:
            raise AuthRequestError(
                grant_type, f"invalid token response {format_params(data)}"
            ) from e

        logger.info("Got %s token from Velux backend", grant_type.value)

        try:
            await self.credential_store.persist_token(session, token)
        except PersistenceError as e:
            logger.error("Could not persist %s token: %s", grant_type.value, e.message)
            raise AuthRequestError(grant_type, f"could not persist token: {e.message}") from e

        session.token = token
        return token
