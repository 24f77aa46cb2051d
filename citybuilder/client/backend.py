"""
citybuilder/client/backend.py

Purpose: Authenticated caller for the CityBuilder API

- httpx.AsyncClient with base URL, 15 s timeout, JSON content type
- Bearer token attached on every request when a token provider returns one
"""

import inspect
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import httpx

from citybuilder.client.config import client_settings
from citybuilder.core.logging import get_logger

logger = get_logger(__name__)

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class BackendClient:
    """Thin wrapper over httpx.AsyncClient for CityBuilder endpoints."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token_provider: Optional[TokenProvider] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url or client_settings.BACKEND_URL
        self.token_provider = token_provider
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or client_settings.BACKEND_TIMEOUT_SECONDS,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def _auth_headers(self) -> Dict[str, str]:
        if self.token_provider is None:
            return {}
        token = self.token_provider()
        if inspect.isawaitable(token):
            token = await token
        if token:
            return {"Authorization": f"Bearer {token}"}
        return {}

    async def request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """
        Send a request and raise httpx.HTTPStatusError on non-2xx.
        """
        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(await self._auth_headers())

        response = await self._client.request(method, path, headers=headers, **kwargs)

        if response.is_error:
            logger.warning(
                f"{method.upper()} {path} -> {response.status_code}: "
                f"{extract_error_message(response)}"
            )
        response.raise_for_status()
        return response

    async def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", path, **kwargs)

    async def patch(self, path: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", path, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def _server_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return None


def extract_error_message(
    error: Union[BaseException, httpx.Response, None],
    fallback: str = "Something went wrong."
) -> str:
    """
    Readable message for a failed call: the server's `message` field when
    present, else the exception text, else `fallback`.
    """
    if isinstance(error, httpx.Response):
        return _server_message(error) or fallback

    response = getattr(error, "response", None)
    if isinstance(error, httpx.HTTPStatusError) and response is not None:
        message = _server_message(response)
        if message:
            return message

    if error is not None and str(error):
        return str(error)
    return fallback
