"""HTTP transport adapter built on httpx."""

from typing import Any

import httpx

from statpool.core.errors import TransportError
from statpool.core.pool import StatPool

_CONTENT_TYPE = "application/json; charset=UTF-8"

DEFAULT_TIMEOUT = 10.0


class HttpxTransport:
    """POSTs encoded envelopes to a collector URL.

    A chunk counts as delivered only when the collector answers HTTP 200
    with a JSON body whose "status" (if present) is 200.

    Example:
        ```python
        transport = HttpxTransport("https://api.example.com/ez")
        pool = StatPool(transport, "my-key", flush_interval=10)
        ```
    """

    def __init__(
        self,
        url: str,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the transport.

        Args:
            url: Collector endpoint receiving POSTed envelopes.
            client: Client to send with. When omitted the transport creates
                one and closes it in aclose().
            timeout: Request timeout in seconds for a created client.
        """
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def url(self) -> str:
        return self._url

    async def send(self, body: bytes) -> None:
        """POST one envelope.

        Raises:
            TransportError: On network errors, non-200 responses, or a
                response body that is not the expected JSON.
        """
        try:
            response = await self._client.post(
                self._url,
                content=body,
                headers={"Content-Type": _CONTENT_TYPE},
            )
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {self._url} failed: {e}") from e

        if response.status_code != httpx.codes.OK:
            raise TransportError(
                f"Received http status code: {response.status_code}",
                status=response.status_code,
            )
        try:
            payload: Any = response.json()
        except ValueError as e:
            raise TransportError(
                f"Malformed response from collector: {response.text!r}",
                status=response.status_code,
            ) from e
        if not isinstance(payload, dict):
            raise TransportError(
                f"Malformed response from collector: {response.text!r}",
                status=response.status_code,
            )
        status = payload.get("status", httpx.codes.OK)
        if status != httpx.codes.OK:
            raise TransportError(
                f"Collector rejected stats: {payload.get('msg', '')}",
                status=status if isinstance(status, int) else None,
            )

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()


def create_stat_pool(
    url: str,
    ezkey: str,
    flush_interval: float,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> StatPool:
    """Create a StatPool that sends to url over HTTP.

    The pool owns the transport and closes it when stopped.

    Args:
        url: Collector endpoint receiving POSTed envelopes.
        ezkey: Account key placed in every envelope.
        flush_interval: Seconds between timer driven flushes.
        timeout: Request timeout in seconds.
        **kwargs: Further StatPool keyword arguments.

    Returns:
        An unstarted StatPool.
    """
    transport = HttpxTransport(url, timeout=timeout)
    return StatPool(transport, ezkey, flush_interval, owns_transport=True, **kwargs)
