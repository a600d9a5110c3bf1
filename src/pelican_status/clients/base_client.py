"""Base class for rate-limited Pelican panel API clients."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Mapping, Optional, TypeVar

import requests

from pelican_status.errors import MalformedResponseError, UpstreamError
from pelican_status.net.rate_limiter import RateLimiter

T = TypeVar("T")

DEFAULT_TIMEOUT_SECONDS = 30.0


class BaseClient:
    """Authenticated JSON access to one panel API with rate limiting."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        rate_limiter: RateLimiter,
        *,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._rate_limiter = rate_limiter
        self._session = session or requests.Session()
        self._logger = logger or logging.getLogger(self.__class__.__name__)
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    def _execute_with_rate_limit(
        self,
        operation: Callable[[], T],
        *,
        name: Optional[str] = None,
    ) -> T:
        """Run ``operation`` after waiting for rate-limiter availability."""
        label = name or getattr(operation, "__name__", "<anonymous>")
        self._rate_limiter.acquire()

        started_at = time.perf_counter()
        try:
            return operation()
        finally:
            elapsed_ms = (time.perf_counter() - started_at) * 1000.0
            if self._logger.isEnabledFor(logging.DEBUG):
                self._logger.debug(
                    "Operation %s completed in %.2f ms",
                    label,
                    elapsed_ms,
                )

    def _get_json(
        self,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        timeout: Optional[float] = None,
        name: Optional[str] = None,
    ) -> Any:
        """GET ``path`` and return the decoded JSON body."""
        url = f"{self._base_url}{path}"

        def _operation() -> Any:
            response = self._session.get(
                url,
                headers=self._build_headers(),
                params=dict(params) if params else None,
                timeout=timeout if timeout is not None else self._timeout,
            )
            self._raise_for_status(response, url)
            return self._decode(response, url)

        return self._execute_with_rate_limit(_operation, name=name or f"GET {path}")

    def _post_json(
        self,
        path: str,
        payload: Mapping[str, Any],
        *,
        timeout: Optional[float] = None,
        name: Optional[str] = None,
    ) -> requests.Response:
        """POST a JSON ``payload`` to ``path`` and return the raw response."""
        url = f"{self._base_url}{path}"

        def _operation() -> requests.Response:
            response = self._session.post(
                url,
                headers=self._build_headers(json_content=True),
                json=dict(payload),
                timeout=timeout if timeout is not None else self._timeout,
            )
            self._raise_for_status(response, url)
            return response

        return self._execute_with_rate_limit(
            _operation, name=name or f"POST {path}"
        )

    def _build_headers(self, json_content: bool = False) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
        }
        if json_content:
            headers["Content-Type"] = "application/json"
        return headers

    def _raise_for_status(self, response: Any, url: str) -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        reason = getattr(response, "reason", "") or ""
        self._logger.warning(
            "Panel request to %s failed: %s %s %s",
            url,
            status,
            reason,
            _preview(getattr(response, "text", "")),
        )
        raise UpstreamError(
            f"Panel returned {status} {reason}".strip(),
            status_code=status,
        )

    def _decode(self, response: Any, url: str) -> Any:
        try:
            return response.json()
        except ValueError as error:
            raise MalformedResponseError(
                f"Panel response from {url} is not valid JSON"
            ) from error


def _preview(text: Optional[str], *, limit: int = 512) -> str:
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}...<truncated>"
