"""HTTP transport for the Velux authorization and domain endpoints.

Wraps a single httpx.AsyncClient and maps every httpx failure to the
TransportError family, so callers never see httpx exceptions:

- httpx.TimeoutException -> NetworkTimeoutError
- httpx.ConnectError / httpx.RequestError -> NetworkConnectionError
- HTTP status >= 400 -> TransportError carrying status and body
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from alexa_velux.core.exceptions import (
    NetworkConnectionError,
    NetworkTimeoutError,
    TransportError,
)
from alexa_velux.core.logger import truncate

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds

CONTENT_TYPE_FORM = "application/x-www-form-urlencoded"
CONTENT_TYPE_JSON = "application/json"


class HttpTransport:
    """Async HTTP transport with structured error reporting.

    Example:
        >>> async with HttpTransport(timeout=10.0) as transport:
        ...     data = await transport.post_form(url, {"grant_type": "password"}, headers)
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        verify_ssl: bool = True,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            timeout: Per-request timeout in seconds.
            verify_ssl: Whether to verify SSL certificates.
            client: Optional pre-built client (tests inject one with a MockTransport).
                An injected client is not closed by this transport.
        """
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._owns_client = client is None
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(verify=self.verify_ssl, timeout=self.timeout)
        return self._client

    async def post_form(
        self, url: str, data: dict[str, str], headers: dict[str, str]
    ) -> dict[str, Any]:
        """POST a form-encoded body and return the decoded JSON response.

        Raises:
            TransportError: On HTTP errors or a non-JSON success body.
            NetworkTimeoutError: If the request times out.
            NetworkConnectionError: If the endpoint cannot be reached.
        """
        response = await self._post(
            url, headers={"Content-Type": CONTENT_TYPE_FORM, **headers}, data=data
        )
        try:
            body = response.json()
        except ValueError as e:
            raise TransportError(
                "Response is not valid JSON",
                url=url,
                status_code=response.status_code,
                response_body=truncate(response.text),
            ) from e
        if not isinstance(body, dict):
            raise TransportError(
                "Response is not a JSON object",
                url=url,
                status_code=response.status_code,
                response_body=truncate(response.text),
            )
        return body

    async def post_json(
        self, url: str, payload: dict[str, Any], headers: dict[str, str]
    ) -> httpx.Response:
        """POST a JSON body and return the successful response."""
        return await self._post(
            url, headers={"Content-Type": CONTENT_TYPE_JSON, **headers}, json=payload
        )

    async def _post(self, url: str, headers: dict[str, str], **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.post(url, headers=headers, timeout=self.timeout, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkTimeoutError(url, self.timeout) from e
        except httpx.ConnectError as e:
            raise NetworkConnectionError(url, e) from e
        except httpx.RequestError as e:
            # Catch any other request-related errors
            raise NetworkConnectionError(url, e) from e

        logger.debug("POST %s -> %s", url, response.status_code)

        if response.status_code >= 400:
            raise TransportError(
                f"HTTP {response.status_code} from backend",
                url=url,
                status_code=response.status_code,
                response_body=response.text,
            )
        return response

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> HttpTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"HttpTransport(timeout={self.timeout}, verify_ssl={self.verify_ssl})"
