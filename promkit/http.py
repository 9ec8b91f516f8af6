"""Helpers for serving metrics over HTTP.

Response writers are objects with a mutable ``headers`` mapping, a
``write_header(status)`` method and a ``write(data)`` method.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping, MutableMapping, Sequence
from dataclasses import dataclass
from enum import IntEnum
from typing import Any

CONTENT_TYPE_HEADER = "Content-Type"
CONTENT_ENCODING_HEADER = "Content-Encoding"
ACCEPT_ENCODING_HEADER = "Accept-Encoding"

STATUS_INTERNAL_SERVER_ERROR = 500
STATUS_SERVICE_UNAVAILABLE = 503

_ERROR_PREFIX = "An error has occurred while serving metrics:\n\n"


class HandlerErrorHandling(IntEnum):
    """How a handler serving metrics reacts to errors."""

    HTTP_ERROR_ON_ERROR = 0
    CONTINUE_ON_ERROR = 1
    PANIC_ON_ERROR = 2


@dataclass
class HandlerOpts:
    """Options for serving metrics; the defaults are reasonable.

    ``error_log`` is called with one line per error. ``max_requests_in_flight``
    and ``timeout`` (in seconds) apply no limit when zero or negative.
    """

    error_log: Callable[[str], object] | None = None
    error_handling: HandlerErrorHandling = HandlerErrorHandling.HTTP_ERROR_ON_ERROR
    registry: Any = None
    disable_compression: bool = False
    max_requests_in_flight: int = 0
    timeout: float = 0.0
    enable_open_metrics: bool = False

    def __post_init__(self) -> None:
        self.error_handling = HandlerErrorHandling(self.error_handling)


class InFlightLimiter:
    """Limits the number of requests served at the same time.

    A limit of zero or less means no limit.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self._semaphore = threading.BoundedSemaphore(limit) if limit > 0 else None

    def try_acquire(self) -> bool:
        """Take a slot without waiting; return whether one was free."""
        if self._semaphore is None:
            return True
        return self._semaphore.acquire(blocking=False)

    def release(self) -> None:
        """Give back a slot taken by ``try_acquire``."""
        if self._semaphore is not None:
            self._semaphore.release()


def _find_key(headers: Mapping[str, Any], name: str) -> str | None:
    wanted = name.lower()
    return next((key for key in headers if key.lower() == wanted), None)


def _header_value(headers: Mapping[str, Any], name: str) -> str:
    key = _find_key(headers, name)
    if key is None:
        return ""
    value = headers[key]
    if isinstance(value, str):
        return value
    if isinstance(value, Sequence) and value:
        return str(value[0])
    return ""


def gzip_accepted(headers: Mapping[str, str | Sequence[str]]) -> bool:
    """Return whether the request headers accept gzip-encoded content."""
    accepted = _header_value(headers, ACCEPT_ENCODING_HEADER)
    for part in accepted.split(","):
        part = part.strip()
        if part == "gzip" or part.startswith("gzip;"):
            return True
    return False


def _delete_header(headers: MutableMapping[str, Any], name: str) -> None:
    key = _find_key(headers, name)
    while key is not None:
        del headers[key]
        key = _find_key(headers, name)


def _set_header(headers: MutableMapping[str, Any], name: str, value: str) -> None:
    _delete_header(headers, name)
    headers[name] = value


def _write_error(writer: Any, message: str, status: int) -> None:
    headers = writer.headers
    _set_header(headers, CONTENT_TYPE_HEADER, "text/plain; charset=utf-8")
    _set_header(headers, "X-Content-Type-Options", "nosniff")
    writer.write_header(status)
    writer.write((message + "\n").encode("utf-8"))


def http_error(writer: Any, error: BaseException | str) -> None:
    """Answer with status 500 and the error as uncompressed plain text.

    Must not be called once a header or body has been sent.
    """
    _delete_header(writer.headers, CONTENT_ENCODING_HEADER)
    _write_error(writer, _ERROR_PREFIX + str(error), STATUS_INTERNAL_SERVER_ERROR)