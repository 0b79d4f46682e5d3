"""
HTTP transport.

Sends bytes, returns bytes. Retries, TLS and client certificates are the
business of the underlying httpx client; the protocol layer only sees
TransportResponse or TransportError.
"""

import ssl
from dataclasses import dataclass, field
from typing import Optional, Protocol

import httpx

from .errors import ERROR_CERTIFICATE, ERROR_TRANSPORT, ConfigurationError, TransportError
from .logging import get_logger

logger = get_logger(__name__)

XML_HEADERS = {
    "Content-Type": "text/xml; charset=utf-8",
    "Accept": "text/xml, text/plain, */*",
}

CONNECT_TIMEOUT_SECONDS = 5.0


def load_client_certificate(path: str) -> ssl.SSLContext:
    """
    SSL context presenting the merchant certificate (PEM with the private key).

    Raises:
        ConfigurationError: The file is missing or not a usable certificate
    """
    ssl_context = ssl.create_default_context()
    try:
        ssl_context.load_cert_chain(path)
    except OSError as e:
        # ssl.SSLError is an OSError too
        raise ConfigurationError(f"{ERROR_CERTIFICATE}: {path}", raw_error=e) from e
    return ssl_context


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    body: bytes
    headers: dict[str, str] = field(default_factory=dict)


class Transport(Protocol):
    async def post(
        self,
        url: str,
        body: bytes,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse: ...

    async def aclose(self) -> None: ...


class HttpTransport:
    """Transport backed by a lazily created, shared httpx.AsyncClient."""

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        cert: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.cert = cert
        self._ssl_context = load_client_certificate(cert) if cert else None
        self._http_client: httpx.AsyncClient | None = client
        self._owns_client = client is None

    def _timeout(self, seconds: float) -> httpx.Timeout:
        return httpx.Timeout(seconds, connect=min(seconds, CONNECT_TIMEOUT_SECONDS))

    def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            kwargs = {}
            if self._ssl_context is not None:
                kwargs["verify"] = self._ssl_context
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
                **kwargs,
            )
        return self._http_client

    async def post(
        self,
        url: str,
        body: bytes,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> TransportResponse:
        client = self._get_http_client()
        request_kwargs = {}
        if timeout is not None:
            request_kwargs["timeout"] = self._timeout(timeout)

        try:
            response = await client.post(
                url,
                content=body,
                headers={**XML_HEADERS, **(headers or {})},
                **request_kwargs,
            )
        except httpx.TimeoutException as e:
            logger.warning("Gateway timeout: %s", url)
            raise TransportError(f"{ERROR_TRANSPORT}: timeout", raw_error=e) from e
        except httpx.RequestError as e:
            logger.warning("Gateway network error: %s (%s)", url, type(e).__name__)
            raise TransportError(f"{ERROR_TRANSPORT}: {e!s}", raw_error=e) from e

        logger.debug("Gateway response status: %s for %s", response.status_code, url)

        if response.status_code >= 500:
            raise TransportError(
                f"{ERROR_TRANSPORT}: HTTP {response.status_code}",
                raw_error=httpx.HTTPStatusError(
                    f"HTTP {response.status_code}", request=response.request, response=response
                ),
            )

        return TransportResponse(
            status_code=response.status_code,
            body=response.content,
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        """Close http client if this transport created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None
