"""
Thin REST client for the Rahat backend.

Each dashboard session owns one ApiClient and therefore one cookie jar,
the same way a browser tab holds the backend's session cookie. Every
outgoing request carries the current X-Request-ID so backend logs can be
joined with ours.
"""

import logging
from typing import Any

import httpx

from rahat_dashboard.config import settings
from rahat_dashboard.errors import ApiError
from rahat_dashboard.middleware.request_context import get_request_id

logger = logging.getLogger(__name__)


async def _attach_request_id(request: httpx.Request) -> None:
    request_id = get_request_id()
    if request_id:
        request.headers["X-Request-ID"] = request_id


def create_http_client(
    *,
    base_url: str | None = None,
    cookies: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url or settings.api_base_url,
        cookies=cookies,
        transport=transport,
        timeout=httpx.Timeout(settings.request_timeout_seconds),
        headers={"Accept": "application/json"},
        event_hooks={"request": [_attach_request_id]},
    )


class ApiClient:
    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request; any non-2xx answer becomes an ApiError."""
        try:
            response = await self.http.request(method, path, **kwargs)
        except httpx.TransportError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiError(
                503,
                title="Network error",
                message=f"Could not reach the Rahat backend ({type(exc).__name__})",
            ) from exc

        if response.is_error:
            error = ApiError.from_response(response)
            logger.info(
                "%s %s -> %s %s",
                method, path, response.status_code, error.code or error.title or "",
            )
            raise error
        logger.debug("%s %s -> %s", method, path, response.status_code)
        return response

    async def get_json(self, path: str, params: dict | None = None) -> Any:
        response = await self.request("GET", path, params=_clean_params(params))
        return response.json()

    async def post_json(self, path: str, body: dict | None = None) -> Any:
        response = await self.request("POST", path, json=body if body is not None else {})
        return response.json()

    async def put_json(self, path: str, body: dict) -> Any:
        response = await self.request("PUT", path, json=body)
        return response.json()

    async def post_multipart(self, path: str, *, data: dict, files: dict) -> Any:
        response = await self.request("POST", path, data=data, files=files)
        return response.json()

    async def get_bytes(self, path: str) -> bytes:
        response = await self.request("GET", path, headers={"Accept": "application/pdf"})
        return response.content

    @property
    def cookies(self) -> httpx.Cookies:
        return self.http.cookies

    def forget_cookies(self) -> None:
        self.http.cookies.clear()

    async def aclose(self) -> None:
        await self.http.aclose()


def _clean_params(params: dict | None) -> dict | None:
    """Drop empty values so they never reach the query string."""
    if not params:
        return None
    return {k: v for k, v in params.items() if v is not None and v != ""}
