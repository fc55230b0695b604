"""Platform v2 HTTP API client (read side)."""

from __future__ import annotations

import json
import time
from datetime import timezone
from email.utils import parsedate_to_datetime
from functools import wraps
from typing import Any, Callable

import requests

from pkg_ops.exceptions import (
    PlatformError,
    PlatformRateLimitError,
    PlatformServerError,
    PlatformBadRequestError,
    PlatformUnauthorizedError,
    PlatformForbiddenError,
    PlatformNotFoundError,
)

API_PREFIX = "/api/v2"
PAGE_SIZE = 100
MAX_RETRIES = 5
INITIAL_BACKOFF = 1  # seconds
REQUEST_TIMEOUT = 60  # seconds


def _parse_error(response: requests.Response) -> dict[str, Any]:
    """Extract error details from a platform error response.

    Platform errors are in the format:
    {
      "code": "not found",
      "message": "bucket not found"
    }

    Returns:
        Dict with keys: code, message. Missing keys are None.
    """
    try:
        data = response.json()
        return {
            "code": data.get("code"),
            "message": data.get("message"),
        }
    except (ValueError, json.JSONDecodeError):
        return {
            "code": None,
            "message": response.text or f"HTTP {response.status_code}",
        }


def _should_retry(response: requests.Response) -> bool:
    """Only rate limiting and server-side failures are worth retrying."""
    status = response.status_code
    return status == 429 or status >= 500


def _parse_retry_after(response: requests.Response, default: int) -> int:
    """Parse Retry-After header from response.

    The Retry-After header can be:
    - An integer (seconds): "5"
    - An HTTP date (RFC 7231): "Wed, 21 Oct 2026 07:28:00 GMT"
    """
    retry_after = response.headers.get("Retry-After")
    if not retry_after:
        return default

    try:
        return int(retry_after)
    except ValueError:
        pass

    try:
        dt = parsedate_to_datetime(retry_after)
    except (TypeError, ValueError):
        return default
    if dt.tzinfo is None:
        # "-0000" zone: UTC with no source offset
        dt = dt.replace(tzinfo=timezone.utc)
    return max(1, int(dt.timestamp() - time.time()))


def _create_exception(response: requests.Response, error_detail: dict[str, Any]) -> PlatformError:
    """Create the PlatformError subclass matching the response status."""
    status = response.status_code
    error_code = error_detail.get("code")
    message = error_detail.get("message") or f"HTTP {status}"

    full_message = message
    if error_code:
        full_message = f"{error_code}: {message}"

    if status == 429:
        exc_class = PlatformRateLimitError
    elif status >= 500:
        exc_class = PlatformServerError
    elif status == 400:
        exc_class = PlatformBadRequestError
    elif status == 401:
        exc_class = PlatformUnauthorizedError
    elif status == 403:
        exc_class = PlatformForbiddenError
    elif status == 404:
        exc_class = PlatformNotFoundError
    else:
        exc_class = PlatformError

    return exc_class(
        full_message,
        status_code=status,
        error_code=error_code,
        response=response,
    )


def _with_retry(func: Callable[..., requests.Response]) -> Callable[..., requests.Response]:
    """Retry a request-returning function with exponential backoff.

    Transient failures sleep for Retry-After (or the current backoff) and
    retry up to MAX_RETRIES times; anything else raises a PlatformError.
    """

    @wraps(func)
    def wrapper(*args, **kwargs) -> requests.Response:
        backoff = INITIAL_BACKOFF
        for attempt in range(MAX_RETRIES + 1):
            resp = func(*args, **kwargs)

            if resp.status_code < 400:
                return resp

            error_detail = _parse_error(resp)
            if _should_retry(resp) and attempt < MAX_RETRIES:
                time.sleep(_parse_retry_after(resp, backoff))
                backoff *= 2
                continue

            raise _create_exception(resp, error_detail)

        # Unreachable, but satisfy type checker
        raise _create_exception(resp, error_detail)

    return wrapper


class PlatformClient:
    """Thin wrapper around the platform v2 API with token auth and retry."""

    def __init__(self, host: str, token: str) -> None:
        self.base_url = host.rstrip("/")
        self._token = token

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Token {self._token}",
            "Accept": "application/json",
        }

    @_with_retry
    def _request(self, url: str, params: dict[str, Any] | None = None) -> requests.Response:
        return requests.get(
            url, headers=self._headers(), params=params, timeout=REQUEST_TIMEOUT,
        )

    def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET request returning parsed JSON.

        Raises:
            PlatformError: On HTTP error
        """
        resp = self._request(f"{self.base_url}{path}", params)
        result: dict[str, Any] = resp.json()
        return result

    def list(self, path: str, key: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """GET with pagination support. Returns all items stored under ``key``.

        Pages are followed through ``links.next``, which carries its own
        query string.
        """
        items: list[dict[str, Any]] = []
        url: str | None = f"{self.base_url}{path}"
        query: dict[str, Any] | None = dict(params or {})
        while url:
            resp = self._request(url, query)
            data = resp.json()
            page = data.get(key) or []
            items.extend(page)
            next_link = (data.get("links") or {}).get("next")
            if not next_link or not page:
                break
            url = f"{self.base_url}{next_link}"
            query = None
        return items

    def list_buckets(self, org_id: str) -> list[dict[str, Any]]:
        return self.list(f"{API_PREFIX}/buckets", "buckets",
                         {"orgID": org_id, "limit": PAGE_SIZE})

    def list_labels(self, org_id: str) -> list[dict[str, Any]]:
        return self.list(f"{API_PREFIX}/labels", "labels", {"orgID": org_id})

    def list_resource_labels(self, resource_type: str, resource_id: str) -> list[dict[str, Any]]:
        """Labels currently mapped to a single resource."""
        return self.list(f"{API_PREFIX}/{resource_type}/{resource_id}/labels", "labels")
