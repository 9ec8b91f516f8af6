"""Middleware that records metrics about outgoing HTTP requests.

A round tripper is any object with ``round_trip(request)`` returning a
response that has a ``status_code`` attribute.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from .instrument_server import check_labels, make_labels


class _RoundTripper(Protocol):
    def round_trip(self, request: Any) -> Any: ...


@dataclass(frozen=True)
class RoundTripperFunc:
    """Adapts a plain callable to the round-tripper interface."""

    func: Callable[[Any], Any]

    def round_trip(self, request: Any) -> Any:
        return self.func(request)


def instrument_round_tripper_in_flight(
    gauge: Any, next_round_tripper: _RoundTripper
) -> RoundTripperFunc:
    """Keep ``gauge`` at the number of requests currently in flight."""

    def round_trip(request: Any) -> Any:
        gauge.inc()
        try:
            return next_round_tripper.round_trip(request)
        finally:
            gauge.dec()

    return RoundTripperFunc(round_trip)


def instrument_round_tripper_counter(
    counter: Any, label_names: Sequence[str], next_round_tripper: _RoundTripper
) -> RoundTripperFunc:
    """Count each successful request; nothing is counted when it raises."""
    code, method = check_labels(label_names)

    def round_trip(request: Any) -> Any:
        response = next_round_tripper.round_trip(request)
        counter.with_labels(make_labels(code, method, request.method, response.status_code)).inc()
        return response

    return RoundTripperFunc(round_trip)


def instrument_round_tripper_duration(
    obs: Any, label_names: Sequence[str], next_round_tripper: _RoundTripper
) -> RoundTripperFunc:
    """Observe the duration in seconds of each successful request."""
    code, method = check_labels(label_names)

    def round_trip(request: Any) -> Any:
        start = time.monotonic()
        response = next_round_tripper.round_trip(request)
        labels = make_labels(code, method, request.method, response.status_code)
        obs.with_labels(labels).observe(time.monotonic() - start)
        return response

    return RoundTripperFunc(round_trip)