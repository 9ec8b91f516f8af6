"""Interfaces for values that accept observations."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class Observer(Protocol):
    """Anything that accepts a single float observation."""

    def observe(self, value: float) -> None: ...


@runtime_checkable
class ExemplarObserver(Protocol):
    """An observer that can also record an exemplar with the observation.

    Passing ``None`` as labels leaves the current exemplar in place.
    """

    def observe_with_exemplar(self, value: float, labels: Mapping[str, str] | None) -> None: ...


@dataclass(frozen=True)
class ObserverFunc:
    """Adapts a plain callable to the Observer interface."""

    func: Callable[[float], object]

    def observe(self, value: float) -> None:
        self.func(value)