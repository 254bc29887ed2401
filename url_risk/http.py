"""Shared async HTTP client.

Wraps one httpx.AsyncClient and maps transport problems onto the source
error taxonomy so adapters only deal with NetworkFailure / AuthFailure /
ParseFailure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from .errors import AuthFailure, NetworkFailure, ParseFailure

logger = logging.getLogger(__name__)

USER_AGENT = "url-risk/1.0"


class Fetcher:
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        timeout_seconds: float = 5.0,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        headers: Optional[dict[str, str]] = None,
        json: Any = None,
        data: Optional[dict[str, Any]] = None,
        timeout: Optional[float] = None,
        check_status: bool = True,
    ) -> httpx.Response:
        limit = timeout if timeout is not None else self.timeout_seconds
        logger.debug("%s %s", method.upper(), url)
        try:
            response = await asyncio.wait_for(
                self._client.request(
                    method.upper(), url, params=params, headers=headers, json=json, data=data
                ),
                timeout=limit,
            )
        except asyncio.TimeoutError as e:
            raise NetworkFailure(f"Request timed out after {limit:g}s") from e
        except httpx.HTTPError as e:
            raise NetworkFailure(str(e) or e.__class__.__name__) from e

        if check_status:
            if response.status_code in (401, 403):
                raise AuthFailure(f"HTTP {response.status_code}: API key rejected")
            if response.status_code == 429:
                raise NetworkFailure("HTTP 429: rate limited")
            if not response.is_success:
                raise NetworkFailure(f"HTTP {response.status_code}: {response.reason_phrase}")
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def head(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("HEAD", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)


def response_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise ParseFailure(f"Malformed JSON from {response.request.url.host}") from e
