"""Resilient Graph API client: the single point of outbound HTTP."""

import asyncio
import json
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from ...config import get_settings
from ...errors import RequestError
from ...logging import get_logger

logger = get_logger(__name__)

TokenProvider = Callable[[], Awaitable[str]]
RetryListener = Callable[[Optional[int], float, int], None]


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, RequestError) and exc.is_transient


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Parse a Retry-After header given either as seconds or an HTTP date."""
    if not value:
        return None
    value = value.strip()
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class wait_retry_after(wait_base):
    """Use the server's retry hint when it sent one, else the fallback strategy."""

    def __init__(self, fallback: wait_base):
        self.fallback = fallback

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, RequestError) and exc.retry_after is not None:
            return exc.retry_after
        return self.fallback(retry_state)


def _error_message(text: str, status: int) -> str:
    try:
        payload = json.loads(text)
    except ValueError:
        return text[:200] or f"HTTP {status}"
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        error = payload["error"]
        code = error.get("code")
        message = error.get("message") or ""
        return f"{code}: {message}" if code else message
    return text[:200]


class GraphClient:
    """Graph API client with exponential backoff on throttling and server errors."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        token_provider: TokenProvider,
        *,
        base_url: Optional[str] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_retry: Optional[RetryListener] = None,
    ):
        """Initialize the Graph client."""
        settings = get_settings()
        self._session = session
        self._token_provider = token_provider
        self.base_url = (base_url or settings.graph_base_url).rstrip('/')
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.base_delay = settings.base_delay if base_delay is None else base_delay
        self.max_delay = settings.max_delay if max_delay is None else max_delay
        self._timeout = aiohttp.ClientTimeout(total=timeout or settings.request_timeout)
        self._sleep = sleep
        self._on_retry = on_retry

    def url(self, path: str) -> str:
        """Resolve an API path against the base URL; absolute URLs pass through."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def authenticate(self) -> None:
        """Acquire a token up front; raises AuthenticationError on failure."""
        await self._token_provider()

    async def execute(
        self,
        uri: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Perform one logical request, retrying transient failures.

        Returns the parsed JSON body (``{}`` for empty responses). Raises
        ``RequestError`` for permanent failures or once retries run out.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_retry_after(
                wait_exponential(multiplier=self.base_delay, exp_base=2, min=0, max=self.max_delay)
            ),
            retry=retry_if_exception(_is_transient),
            before_sleep=self._before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(self._send, self.url(uri), method.upper(), headers, body)

    def _before_sleep(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        status = exc.status_code if isinstance(exc, RequestError) else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            "graph.request.retry",
            status_code=status,
            delay=delay,
            attempt=retry_state.attempt_number,
            max_retries=self.max_retries,
            uri=exc.uri if isinstance(exc, RequestError) else None,
        )
        if self._on_retry is not None:
            self._on_retry(status, delay, retry_state.attempt_number)

    async def _send(
        self,
        uri: str,
        method: str,
        headers: Optional[Dict[str, str]],
        body: Optional[Dict[str, Any]],
    ) -> Any:
        token = await self._token_provider()
        request_headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        if body is not None:
            request_headers["Content-Type"] = "application/json"
        request_headers.update(headers or {})

        try:
            async with self._session.request(
                method,
                uri,
                headers=request_headers,
                json=body,
                timeout=self._timeout,
            ) as response:
                text = await response.text()

                if response.status >= 400:
                    raise RequestError(
                        response.status,
                        _error_message(text, response.status),
                        retry_after=parse_retry_after(response.headers.get("Retry-After")),
                        uri=uri,
                    )

                logger.debug("graph.request", method=method, uri=uri, status_code=response.status)

                if not text.strip():
                    return {}
                try:
                    return json.loads(text)
                except ValueError:
                    raise RequestError(response.status, "malformed response", uri=uri)

        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise RequestError(None, f"{type(e).__name__}: {e}", uri=uri) from e
