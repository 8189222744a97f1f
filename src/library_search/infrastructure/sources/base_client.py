"""
Shared HTTP plumbing for catalog adapters and enrichment providers.

One ``httpx.AsyncClient`` per instance, spaced by a MinIntervalLimiter and
guarded by a CircuitBreaker. A 429 is retried after its Retry-After delay;
transport errors are retried with exponential backoff.

How a failure surfaces depends on ``_raise_errors``:

    _raise_errors = True    catalog adapters; SourceError is raised and the
                            fan-out records it on the source's status entry
    _raise_errors = False   enrichment providers; the failure is logged and
                            the call returns None
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx
from typing_extensions import Self

from library_search.shared.async_utils import CircuitBreaker, MinIntervalLimiter
from library_search.shared.exceptions import RateLimitError, SourceError

logger = logging.getLogger(__name__)

USER_AGENT = "library-search/1.0"

# Returned by _handle_expected_status when the response needs normal processing
_CONTINUE = object()


class _Retry(Exception):
    """Internal signal: sleep ``delay`` seconds, then send the request again."""

    def __init__(self, delay: float) -> None:
        super().__init__(delay)
        self.delay = delay


class BaseAPIClient:
    """
    HTTP client base.

    Subclasses set ``_service_name`` (used in logs and error messages) and
    may override three hooks:

    ``_handle_expected_status(response, url)``
        short-circuit a status code, e.g. 404 means "no such DOI"
    ``_parse_response(response, expect_json)``
        unwrap an envelope such as CrossRef's ``message``
    ``_execute_request(url, ...)``
        per-request headers or signing

    Pass ``client=`` to supply a pre-built httpx client (a MockTransport in
    tests); otherwise one is created with pooled connections.
    """

    _service_name: str = "API"
    _MAX_RETRIES: int = 2
    _raise_errors: bool = False

    def __init__(
        self,
        base_url: str = "",
        timeout: float = 10.0,
        min_interval: float = 0.1,
        headers: dict[str, str] | None = None,
        circuit_breaker: CircuitBreaker | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._limiter = MinIntervalLimiter(min_interval=min_interval)
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=10, recovery_timeout=60.0)
        if client is None:
            client = httpx.AsyncClient(
                timeout=timeout,
                headers={"User-Agent": USER_AGENT, **(headers or {})},
                follow_redirects=True,
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10, keepalive_expiry=30.0),
            )
        self._client = client

    @property
    def service_name(self) -> str:
        return self._service_name

    def _build_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return self._base_url + url

    def _fail(self, message: str, *, retryable: bool = True) -> None:
        if self._raise_errors:
            raise SourceError(f"{self._service_name}: {message}", source_id=self._service_name, retryable=retryable)

    @staticmethod
    def _backoff(attempt: int) -> float:
        return float(2 ** (attempt + 1))

    def _retry_after(self, response: httpx.Response, attempt: int) -> float:
        header = response.headers.get("Retry-After")
        if header is None:
            return self._backoff(attempt)
        try:
            return float(header)
        except ValueError:
            return self._backoff(attempt)

    async def _attempt(self, url: str, attempt: int, **request: Any) -> Any:
        """
        Send once and interpret the response.

        Raises _Retry when the caller should try again; every other outcome
        is either a return value or an httpx / ValueError exception.
        """
        async with self._circuit_breaker:
            response = await self._execute_request(url, **request)

            expected = self._handle_expected_status(response, url)
            if expected is not _CONTINUE:
                return expected

            if response.status_code == 429:
                if attempt < self._MAX_RETRIES:
                    raise _Retry(self._retry_after(response, attempt))
                logger.warning(f"{self._service_name}: still rate limited after {attempt} retries")
                self._fail("rate limit exceeded (HTTP 429)")
                return None

            response.raise_for_status()
            return self._parse_response(response, request["expect_json"])

    async def _make_request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        expect_json: bool = True,
    ) -> Any:
        """
        GET (or POST ``data`` as JSON) and return the parsed body.

        ``url`` may be absolute or a path under ``base_url``. Returns the
        decoded JSON, the text when ``expect_json`` is False, or None when
        the request failed and this client does not raise.
        """
        full_url = self._build_url(url)
        request = {"method": method, "params": params, "data": data, "headers": headers, "expect_json": expect_json}

        for attempt in range(self._MAX_RETRIES + 1):
            await self._limiter.acquire()
            try:
                return await self._attempt(full_url, attempt, **request)
            except _Retry as retry:
                logger.warning(f"{self._service_name}: HTTP 429, retrying in {retry.delay:.1f}s")
                await asyncio.sleep(retry.delay)
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                logger.warning(f"{self._service_name}: HTTP {status} {e.response.reason_phrase} for {full_url}")
                self._fail(f"HTTP {status} {e.response.reason_phrase}", retryable=False)
                return None
            except httpx.RequestError as e:
                if attempt < self._MAX_RETRIES:
                    delay = self._backoff(attempt)
                    logger.warning(f"{self._service_name}: {type(e).__name__} ({e}), retrying in {delay:.0f}s")
                    await asyncio.sleep(delay)
                    continue
                logger.warning(f"{self._service_name}: giving up after {attempt + 1} attempts: {e}")
                self._fail(f"request failed: {type(e).__name__}: {e}")
                return None
            except RateLimitError:
                logger.warning(f"{self._service_name}: circuit open, request skipped")
                self._fail("circuit breaker open")
                return None
            except ValueError as e:
                logger.warning(f"{self._service_name}: response body is not JSON: {e}")
                self._fail(f"unparseable response: {e}", retryable=False)
                return None
        return None

    async def _execute_request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        expect_json: bool = True,
    ) -> httpx.Response:
        if method == "POST" and data:
            return await self._client.post(url, params=params, json=data, headers=headers or {})
        return await self._client.get(url, params=params, headers=headers or {})

    def _handle_expected_status(self, response: httpx.Response, url: str) -> Any:
        """Return a value to short-circuit on ``response``, or _CONTINUE."""
        return _CONTINUE

    def _parse_response(self, response: httpx.Response, expect_json: bool) -> Any:
        return response.json() if expect_json else response.text

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
