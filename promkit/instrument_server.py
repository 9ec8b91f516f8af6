"""Middleware that records metrics about the HTTP requests a handler serves.

A handler is any callable taking ``(writer, request)``. Observer vectors and
counter vectors are objects whose ``with_labels(labels)`` method returns an
observer (with ``observe``) or a counter (with ``inc``). A gauge offers
``inc`` and ``dec``.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from .delegator import new_delegator
from .observer import Observer

SUPPORTED_LABELS = ("code", "method")

Handler = Callable[[Any, "Request"], object]


class _ObserverVec(Protocol):
    def with_labels(self, labels: Mapping[str, str]) -> Observer: ...


class _Counter(Protocol):
    def inc(self) -> None: ...


class _CounterVec(Protocol):
    def with_labels(self, labels: Mapping[str, str]) -> _Counter: ...


class _Gauge(Protocol):
    def inc(self) -> None: ...

    def dec(self) -> None: ...


@dataclass
class Request:
    """The parts of an HTTP request that instrumentation looks at.

    ``content_length`` is -1 when the length of the body is unknown.
    """

    method: str = "GET"
    url: str | None = ""
    proto: str = "HTTP/1.1"
    headers: Mapping[str, Sequence[str]] = field(default_factory=dict)
    host: str = ""
    content_length: int = -1


def sanitize_method(method: str) -> str:
    """Return the HTTP method in lower case."""
    return method.lower()


def sanitize_code(status: int) -> str:
    """Return the status code as text; an unset status (0) counts as 200."""
    return "200" if status == 0 else str(status)


def make_labels(code: bool, method: bool, request_method: str, status: int) -> dict[str, str]:
    """Build the "code" and/or "method" labels for one request."""
    labels: dict[str, str] = {}
    if code:
        labels["code"] = sanitize_code(status)
    if method:
        labels["method"] = sanitize_method(request_method)
    return labels


def compute_approximate_request_size(request: Request) -> int:
    """Approximate the size of a request from its URL, headers and body length."""
    size = len(request.url) if request.url is not None else 0
    size += len(request.method)
    size += len(request.proto)
    for name, values in request.headers.items():
        size += len(name) + sum(len(value) for value in values)
    size += len(request.host)
    if request.content_length != -1:
        size += request.content_length
    return size


def check_labels(label_names: Sequence[str]) -> tuple[bool, bool]:
    """Return whether the variable labels include "code" and "method".

    ``label_names`` are the labels neither constant nor curried. Any other
    name, or a name given twice, raises ``ValueError``.
    """
    names = list(label_names)
    if len(set(names)) != len(names):
        raise ValueError(f"duplicate label names in {names!r}")
    unsupported = [name for name in names if name not in SUPPORTED_LABELS]
    if unsupported:
        raise ValueError(f"metric partitioned with non-supported labels: {unsupported!r}")
    return "code" in names, "method" in names


def _elapsed(start: float) -> float:
    return time.monotonic() - start


def instrument_handler_in_flight(gauge: _Gauge, next_handler: Handler) -> Handler:
    """Keep ``gauge`` at the number of requests currently being handled."""

    def handler(writer: Any, request: Request) -> None:
        gauge.inc()
        try:
            next_handler(writer, request)
        finally:
            gauge.dec()

    return handler


def instrument_handler_duration(
    obs: _ObserverVec, label_names: Sequence[str], next_handler: Handler
) -> Handler:
    """Observe the duration of each request in seconds.

    Nothing is observed when the wrapped handler raises.
    """
    code, method = check_labels(label_names)

    if code:

        def handler(writer: Any, request: Request) -> None:
            start = time.monotonic()
            delegator = new_delegator(writer)
            next_handler(delegator, request)
            labels = make_labels(code, method, request.method, delegator.status)
            obs.with_labels(labels).observe(_elapsed(start))

        return handler

    def plain_handler(writer: Any, request: Request) -> None:
        start = time.monotonic()
        next_handler(writer, request)
        obs.with_labels(make_labels(code, method, request.method, 0)).observe(_elapsed(start))

    return plain_handler


def instrument_handler_counter(
    counter: _CounterVec, label_names: Sequence[str], next_handler: Handler
) -> Handler:
    """Count each completed request; nothing is counted when the handler raises."""
    code, method = check_labels(label_names)

    if code:

        def handler(writer: Any, request: Request) -> None:
            delegator = new_delegator(writer)
            next_handler(delegator, request)
            counter.with_labels(make_labels(code, method, request.method, delegator.status)).inc()

        return handler

    def plain_handler(writer: Any, request: Request) -> None:
        next_handler(writer, request)
        counter.with_labels(make_labels(code, method, request.method, 0)).inc()

    return plain_handler


def instrument_handler_time_to_write_header(
    obs: _ObserverVec, label_names: Sequence[str], next_handler: Handler
) -> Handler:
    """Observe the seconds until the response header is first written."""
    code, method = check_labels(label_names)

    def handler(writer: Any, request: Request) -> None:
        start = time.monotonic()

        def on_header(status: int) -> None:
            labels = make_labels(code, method, request.method, status)
            obs.with_labels(labels).observe(_elapsed(start))

        next_handler(new_delegator(writer, on_header), request)

    return handler


def instrument_handler_request_size(
    obs: _ObserverVec, label_names: Sequence[str], next_handler: Handler
) -> Handler:
    """Observe the approximate size of each request in bytes."""
    code, method = check_labels(label_names)

    if code:

        def handler(writer: Any, request: Request) -> None:
            delegator = new_delegator(writer)
            next_handler(delegator, request)
            size = compute_approximate_request_size(request)
            labels = make_labels(code, method, request.method, delegator.status)
            obs.with_labels(labels).observe(float(size))

        return handler

    def plain_handler(writer: Any, request: Request) -> None:
        next_handler(writer, request)
        size = compute_approximate_request_size(request)
        obs.with_labels(make_labels(code, method, request.method, 0)).observe(float(size))

    return plain_handler


def instrument_handler_response_size(
    obs: _ObserverVec, label_names: Sequence[str], next_handler: Handler
) -> Handler:
    """Observe the number of response bytes written for each request."""
    code, method = check_labels(label_names)

    def handler(writer: Any, request: Request) -> None:
        delegator = new_delegator(writer)
        next_handler(delegator, request)
        labels = make_labels(code, method, request.method, delegator.status)
        obs.with_labels(labels).observe(float(delegator.written))

    return handler