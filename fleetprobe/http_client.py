"""
HTTP client for one endpoint under test.

Uses a *persistent* ``httpx.AsyncClient`` per ``EndpointClient`` instance
so every call of a run shares one connection pool.  The client is created
lazily on first use and closed via :meth:`close` (or the async context
manager).

Every request carries the bearer token and the run's ``X-Correlation-Id``.
No retries: a failed call fails the step.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from fleetprobe.config import REQUEST_TIMEOUT
from fleetprobe.correlation import HEADER_NAME, get_correlation_id

logger = logging.getLogger(__name__)


def read_payload(resp: httpx.Response) -> Any:
    """Parse a JSON body; fall back to the raw text wrapped as an error."""
    try:
        return resp.json()
    except ValueError:
        return {"error": {"message": resp.text}}


class EndpointClient:
    """Thin wrapper around httpx.AsyncClient for calls to one endpoint."""

    def __init__(
        self,
        base_url: str,
        auth_token: str,
        timeout: float = REQUEST_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily initialise the persistent async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.auth_token}",
            "Content-Type": "application/json",
        }
        cid = get_correlation_id()
        if cid:
            headers[HEADER_NAME] = cid
        return headers

    async def post_json(self, path: str, payload: dict[str, Any]) -> tuple[httpx.Response, Any]:
        """POST *payload* and return the response with its parsed body."""
        resp = await self._get_client().post(path, json=payload, headers=self._headers())
        logger.debug("POST %s%s → %d", self.base_url, path, resp.status_code)
        return resp, read_payload(resp)

    async def get(self, path: str, **kwargs) -> httpx.Response:
        resp = await self._get_client().get(path, headers=self._headers(), **kwargs)
        logger.debug("GET %s%s → %d", self.base_url, path, resp.status_code)
        return resp

    async def close(self) -> None:
        """Close the underlying HTTP client (releases connections)."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "EndpointClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
