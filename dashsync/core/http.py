"""
Async HTTP transport for the dashboard API.

Wraps an `httpx.AsyncClient` and turns HTTP outcomes into the error
taxonomy the sync layer works with:

- 401: the login redirect hook fires and `AuthenticationRequiredError` is raised
- other non-2xx: `ApiResponseError` carrying the decoded JSON body
- transport failures: `httpx.HTTPError` propagates unchanged
"""

import logging
from collections.abc import Callable
from typing import Any

import httpx

from dashsync.core.errors import ApiResponseError, AuthenticationRequiredError

logger = logging.getLogger(__name__)

UnauthorizedHandler = Callable[[str], None]


def log_login_redirect(login_route: str) -> None:
    """Default 401 handler: there is no browser to navigate, so record the redirect."""
    logger.warning(
        f"Authentication required - redirecting to {login_route}",
        extra={"login_route": login_route},
    )


def _decode_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body; anything else decodes to an empty dict."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class DashboardApiClient:
    """
    Thin JSON client for the dashboard's REST resources.

    The client is constructed once at application startup and shared by every
    store. Pass `client` to reuse an existing `httpx.AsyncClient` (tests use
    this to plug in `httpx.MockTransport` or `httpx.ASGITransport`); the
    caller then owns its lifecycle.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        login_route: str = "/login",
        on_unauthorized: UnauthorizedHandler | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.login_route = login_route
        self._on_unauthorized = on_unauthorized or log_login_redirect
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))
        self._headers = headers or {}

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _check(self, response: httpx.Response, path: str) -> None:
        if response.status_code == 401:
            self._on_unauthorized(self.login_route)
            raise AuthenticationRequiredError(
                "Authentication required", details={"path": path}
            )
        if response.is_error:
            raise ApiResponseError(
                f"Request to {path} failed: {response.status_code}",
                status_code=response.status_code,
                body=_decode_body(response),
            )

    async def get_json(self, path: str) -> dict[str, Any]:
        """GET a resource and return its decoded JSON object."""
        response = await self._client.get(self._url(path), headers=self._headers)
        self._check(response, path)
        return response.json()

    async def post_json(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON body; returns the decoded response object (empty if none)."""
        response = await self._client.post(self._url(path), json=body, headers=self._headers)
        self._check(response, path)
        return _decode_body(response)

    async def aclose(self) -> None:
        """Close the underlying client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
