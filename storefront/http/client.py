"""
API client: response caching, bounded retry and auth-aware invalidation.

Reads (GET/HEAD):
  - served from the response cache while fresh (ApiResponse.from_cache=True)
  - otherwise sent, retried on timeouts / dropped connections / retryable
    status codes with exponential backoff, and cached on success
Writes (POST/PUT/PATCH/DELETE):
  - never read from or stored in the cache, never retried
  - on success, drop cached reads of the same resource family
HTTP 401 on anything:
  - clear the stored token and token-scoped envelopes, raise AuthExpiredError
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional

import httpx

from storefront.cache.policy import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY,
    READ_METHODS,
    RETRYABLE_STATUS_CODES,
    backoff_delay,
    make_request_key,
    normalize_path,
    resource_family,
)
from storefront.core.errors import ApiError, AuthExpiredError, NetworkTransientError, NotFoundError
from storefront.http.credentials import TokenStore
from storefront.http.response_cache import ResponseCache
from storefront.utils.logger import get_logger

logger = get_logger("api_client")

# Transport failures treated as transient
TRANSIENT_ERRORS = (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError)


@dataclass
class ApiResponse:
    status_code: int
    data: Any
    from_cache: bool = False


def _parse_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiClient:
    """
    Async HTTP client for the storefront backend.

    Construct once per process and share; tests build isolated instances
    with an httpx.MockTransport.
    """

    def __init__(
        self,
        base_url: str,
        cache: ResponseCache,
        credentials: TokenStore,
        timeout: float = 15.0,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        retryable_status_codes: Iterable[int] = RETRYABLE_STATUS_CODES,
        default_headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.cache = cache
        self.credentials = credentials
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.retryable_status_codes = frozenset(retryable_status_codes)
        self._sleep = sleep
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                **dict(default_headers or {}),
            },
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    #
    # Public verbs
    #

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None,
                  use_cache: bool = True) -> ApiResponse:
        return await self.request("GET", path, params=params, use_cache=use_cache)

    async def post(self, path: str, json: Any = None, params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return await self.request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None, params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return await self.request("PUT", path, params=params, json=json)

    async def patch(self, path: str, json: Any = None, params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return await self.request("PATCH", path, params=params, json=json)

    async def delete(self, path: str, json: Any = None, params: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return await self.request("DELETE", path, params=params, json=json)

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        use_cache: bool = True,
    ) -> ApiResponse:
        """
        Send a request through the cache / retry policy.

        Raises:
            AuthExpiredError: HTTP 401 (token already cleared)
            NotFoundError: HTTP 404
            NetworkTransientError: transient failure after all retries
            ApiError: any other non-success status
        """
        method = method.upper()
        path = normalize_path(path)
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        is_read = method in READ_METHODS

        cache_key = make_request_key(path, clean_params) if is_read else None
        if is_read and use_cache:
            envelope = self.cache.get(cache_key)
            if envelope is not None:
                logger.debug("api_client: method=%s path=%s result=cache_hit", method, path)
                return ApiResponse(status_code=200, data=envelope.data, from_cache=True)

        response, scoped = await self._send(method, path, clean_params, json, retry=is_read)
        data = _parse_body(response)

        if is_read:
            if method == "GET":
                await self.cache.put(cache_key, path, data, scoped=scoped)
        else:
            dropped = await self.cache.invalidate_family(resource_family(path))
            if dropped:
                logger.info("api_client: method=%s path=%s invalidated=%s", method, path, dropped)

        return ApiResponse(status_code=response.status_code, data=data)

    async def invalidate(self, path: str, params: Optional[Mapping[str, Any]] = None) -> bool:
        """Drop the cached GET response for one path + params."""
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        return await self.cache.invalidate(make_request_key(normalize_path(path), clean_params))

    async def set_token(self, token: str) -> None:
        """
        Sign in with a new bearer token.

        Envelopes fetched under a different previous token are dropped so one
        user never reads another user's cached responses.
        """
        if await self.credentials.set_token(token):
            dropped = await self.cache.drop_scoped()
            logger.info("api_client: token replaced dropped=%s", dropped)

    async def clear_token(self) -> None:
        """Sign out: forget the token and every envelope fetched with it."""
        await self.credentials.clear()
        await self.cache.drop_scoped()

    async def clear_cache(self) -> int:
        return await self.cache.clear()

    #
    # Internals
    #

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self.credentials.get_token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _send(self, method: str, path: str, params: Dict[str, Any], json: Any,
                    retry: bool) -> tuple:
        attempts = 1 + (self.max_retries if retry else 0)

        for attempt in range(1, attempts + 1):
            headers = await self._auth_headers()
            scoped = bool(headers)
            try:
                response = await self._client.request(
                    method, path, params=params or None, json=json, headers=headers,
                )
            except TRANSIENT_ERRORS as e:
                if attempt < attempts:
                    await self._backoff(method, path, attempt, reason=type(e).__name__)
                    continue
                logger.error("api_client: method=%s path=%s result=error attempts=%s error=%s",
                             method, path, attempt, e)
                raise NetworkTransientError(f"{method} {path} failed: {e}", attempts=attempt) from e

            status = response.status_code
            if status == 401:
                await self.credentials.clear()
                dropped = await self.cache.drop_scoped()
                logger.warning("api_client: method=%s path=%s result=auth_expired dropped=%s",
                               method, path, dropped)
                raise AuthExpiredError(f"{method} {path}: authentication expired")

            if status in self.retryable_status_codes:
                if attempt < attempts:
                    await self._backoff(method, path, attempt, reason=f"HTTP {status}")
                    continue
                raise NetworkTransientError(
                    f"{method} {path} failed with HTTP {status}", attempts=attempt, status_code=status,
                )

            if status == 404:
                raise NotFoundError(f"{method} {path}: not found")

            if status >= 400:
                body = _parse_body(response)
                logger.warning("api_client: method=%s path=%s result=error status=%s", method, path, status)
                raise ApiError(f"{method} {path} failed with HTTP {status}", status_code=status, body=body)

            return response, scoped

        # unreachable: the loop either returns or raises
        raise NetworkTransientError(f"{method} {path} failed", attempts=attempts)

    async def _backoff(self, method: str, path: str, attempt: int, reason: str) -> None:
        delay = backoff_delay(attempt, self.retry_base_delay)
        logger.info("api_client: method=%s path=%s result=retry attempt=%s reason=%s delay=%.2fs",
                    method, path, attempt, reason, delay)
        await self._sleep(delay)
