"""
Error taxonomy and API error mapping for GitDigger.
"""

import asyncio
import functools
import inspect
import json
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

import httpx

from .logger import logger


####
##      EXCEPTION CLASSES
#####
class GitDiggerError(Exception):
    """Base exception for every repository sync failure."""

    kind = "GitDiggerError"
    retryable = False

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message} (Original: {self.original_error})"
        return self.message


class NotFoundError(GitDiggerError):
    """Provider reported the repository or owner does not exist."""

    kind = "NotFound"


class RateLimitError(GitDiggerError):
    """Provider quota exhausted; `retry_after` is the provider's hint in seconds."""

    kind = "RateLimited"
    retryable = True

    def __init__(
        self,
        message: str,
        retry_after: Optional[float] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, original_error)
        self.retry_after = retry_after


class AuthenticationError(GitDiggerError):
    """Credentials are missing or invalid for the requested resource."""

    kind = "AuthRequired"


class TransientNetworkError(GitDiggerError):
    """Retryable I/O failure talking to the provider."""

    kind = "TransientNetwork"
    retryable = True


class ProviderError(GitDiggerError):
    """Any other non-2xx response, with the raw status and body kept for diagnostics."""

    kind = "ProviderError"

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = body


class MalformedResponseError(GitDiggerError):
    """Response could not be decoded or lacks required fields."""

    kind = "MalformedResponse"


class CloneFailedError(GitDiggerError):
    kind = "CloneFailed"


class UpdateFailedError(GitDiggerError):
    kind = "UpdateFailed"


class UnsupportedProviderError(GitDiggerError):
    """The reference could not be mapped to a known hosting provider."""

    kind = "Unsupported"


class GitCommandError(GitDiggerError):
    """The external git executable reported an error."""

    kind = "GitCommand"

    def __init__(self, message: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr


RETRYABLE_ERRORS = (RateLimitError, TransientNetworkError)

TRANSIENT_STATUSES = {502, 503, 504}


####
##      RESPONSE MAPPING
#####
def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    for key, value in headers.items():
        if key.lower() == name:
            return value
    return None


def parse_retry_after(headers: Mapping[str, str]) -> Optional[float]:
    """
    Extract a retry-after hint in seconds from response headers.

    Understands `Retry-After` (seconds) and the epoch based
    `X-RateLimit-Reset` / `RateLimit-Reset` headers.
    """

    retry_after = _header(headers, "retry-after")
    if retry_after is not None:
        try:
            return max(float(retry_after), 0.0)
        except ValueError:
            pass

    for name in ("x-ratelimit-reset", "ratelimit-reset"):
        reset = _header(headers, name)
        if reset is None:
            continue
        try:
            return max(float(reset) - datetime.now().timestamp(), 0.0)
        except ValueError:
            continue
    return None


def _is_quota_exhausted(headers: Mapping[str, str], body: Any) -> bool:
    for name in ("x-ratelimit-remaining", "ratelimit-remaining"):
        if _header(headers, name) == "0":
            return True
    if _header(headers, "retry-after") is not None:
        return True
    return "rate limit" in str(body).lower()


def raise_for_response(response, url: str = "") -> None:
    """
    Map a non-2xx HTTP response onto the error taxonomy.

    Args:
        response: Object exposing `status`, `headers` and `body`
        url: Requested URL, used in messages only

    Raises:
        GitDiggerError subclass matching the response status
    """

    status = response.status
    if 200 <= status < 300:
        return

    headers = response.headers or {}
    body = response.body
    where = f" for {url}" if url else ""

    if status == 404:
        raise NotFoundError(f"Resource not found{where}")
    if status == 429 or (status == 403 and _is_quota_exhausted(headers, body)):
        raise RateLimitError(
            f"Rate limit exceeded{where}", retry_after=parse_retry_after(headers)
        )
    if status in (401, 403):
        raise AuthenticationError(f"Authentication required{where} (HTTP {status})")
    if status in TRANSIENT_STATUSES:
        raise TransientNetworkError(f"Provider temporarily unavailable{where} (HTTP {status})")

    raise ProviderError(f"Unexpected HTTP {status}{where}", status=status, body=body)


def decode_json(body: Any, url: str = "") -> Any:
    """Decode a JSON response body, raising MalformedResponseError on garbage."""

    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if not isinstance(body, str):
        return body
    try:
        return json.loads(body)
    except ValueError as e:
        raise MalformedResponseError(f"Invalid JSON response from {url or 'provider'}", e)


####
##      DECORATORS
#####
def _translate(error: Exception) -> GitDiggerError:
    if isinstance(error, GitDiggerError):
        return error
    if isinstance(error, httpx.TimeoutException):
        return TransientNetworkError("Request timed out", error)
    if isinstance(error, httpx.RequestError):
        if "429" in str(error) or "rate limit" in str(error).lower():
            return RateLimitError("Rate limit exceeded", original_error=error)
        return TransientNetworkError("Network error", error)
    if isinstance(error, (ConnectionError, TimeoutError)):
        return TransientNetworkError("Network error", error)
    return GitDiggerError("Unexpected error", error)


def handle_api_error(func: Callable) -> Callable:
    """
    Convert transport and unexpected errors into the GitDigger taxonomy.

    Works for both coroutine functions and plain callables. Errors already
    in the taxonomy pass through untouched.
    """

    if inspect.iscoroutinefunction(func):
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                translated = _translate(e)
                if translated is not e:
                    logger.debug(f"{func.__name__} failed: {e}")
                    raise translated from e
                raise

        return async_wrapper

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            translated = _translate(e)
            if translated is not e:
                logger.debug(f"{func.__name__} failed: {e}")
                raise translated from e
            raise

    return wrapper


__all__ = [
    "GitDiggerError",
    "NotFoundError",
    "RateLimitError",
    "AuthenticationError",
    "TransientNetworkError",
    "ProviderError",
    "MalformedResponseError",
    "CloneFailedError",
    "UpdateFailedError",
    "UnsupportedProviderError",
    "GitCommandError",
    "RETRYABLE_ERRORS",
    "parse_retry_after",
    "raise_for_response",
    "decode_json",
    "handle_api_error",
]
