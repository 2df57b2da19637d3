"""HTTP request handling with retry logic for Bluesky client."""

import asyncio
import os
import httpx
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger("social_clients.bluesky.http")

DEFAULT_BASE_URL = "https://bsky.social"


class HTTPMixin:
    """Handles HTTP requests with retry logic, backoff, and auto-refresh."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (
            base_url or os.getenv("BLUESKY_PDS_URL") or DEFAULT_BASE_URL
        ).rstrip("/")
        # Injected transport (e.g. httpx.MockTransport) replaces the network
        self._transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_ms: int = 500,
        _auth_retry: bool = True,
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic and auto token refresh.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path (e.g., "/xrpc/...")
            headers: Optional headers dict
            params: Optional query parameters; list values repeat the key
            json_body: Optional JSON body
            timeout: Request timeout in seconds
            max_retries: Maximum number of attempts
            backoff_ms: Base backoff delay in milliseconds, doubled per attempt
            _auth_retry: Whether to retry with token refresh on 400/401 (internal)

        Returns:
            httpx.Response object

        Raises:
            httpx.HTTPStatusError: On HTTP errors after all retries
            httpx.TransportError: On transport errors after all retries
        """
        url = f"{self.base_url}{path}"
        last_exc: Optional[Exception] = None

        for attempt in range(1, max_retries + 1):
            delay = backoff_ms * (2 ** (attempt - 1)) / 1000.0
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    resp = await client.request(
                        method,
                        url,
                        headers=headers,
                        params=params,
                        json=json_body,
                        timeout=timeout,
                    )

                # Retry on 5xx and on 429/408; otherwise raise if error
                if resp.status_code >= 500 or resp.status_code in (429, 408):
                    if attempt < max_retries:
                        logger.warning(
                            f"Retrying {method} {path} after status {resp.status_code} "
                            f"(attempt {attempt}/{max_retries}) in {delay:.2f}s"
                        )
                        await asyncio.sleep(delay)
                        continue

                resp.raise_for_status()
                return resp

            except (httpx.TransportError, httpx.TimeoutException) as e:
                last_exc = e
                if attempt < max_retries:
                    logger.warning(
                        f"Retrying {method} {path} after transport/timeout error: {e} "
                        f"(attempt {attempt}/{max_retries}) in {delay:.2f}s"
                    )
                    await asyncio.sleep(delay)
                    continue
                raise

            except httpx.HTTPStatusError as e:
                last_exc = e

                # Expired access token shows up as 400 (ExpiredToken) or 401
                if (
                    _auth_retry
                    and e.response.status_code in (400, 401)
                    and headers
                    and "Authorization" in headers
                ):
                    logger.info(
                        f"Got {e.response.status_code}, attempting to refresh session"
                    )
                    if await self.refresh_session():
                        new_headers = headers.copy()
                        new_headers["Authorization"] = f"Bearer {self.access_jwt}"
                        return await self._request(
                            method,
                            path,
                            headers=new_headers,
                            params=params,
                            json_body=json_body,
                            timeout=timeout,
                            max_retries=max_retries,
                            backoff_ms=backoff_ms,
                            _auth_retry=False,  # Prevent infinite recursion
                        )
                raise

        if last_exc:
            raise last_exc
        raise RuntimeError("Unknown HTTP request failure")
