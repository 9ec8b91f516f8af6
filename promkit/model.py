"""Data model of collected metrics and helpers to name and order them."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from functools import cmp_to_key
from typing import Any, Protocol


class _Writable(Protocol):
    def write(self) -> "Metric": ...


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class LabelPair:
    """A single label name and value."""

    name: str
    value: str


@dataclass
class Exemplar:
    """A sample value with labels and the time it was recorded."""

    labels: list[LabelPair]
    value: float
    timestamp: datetime | None = None


@dataclass
class Bucket:
    """One histogram bucket with its cumulative count."""

    cumulative_count: int
    upper_bound: float
    exemplar: Exemplar | None = None


@dataclass
class HistogramValue:
    """The state of a histogram at the time it was written."""

    sample_count: int
    sample_sum: float
    buckets: list[Bucket] = field(default_factory=list)


@dataclass
class Metric:
    """A written sample with its labels and optional timestamp."""

    labels: list[LabelPair] = field(default_factory=list)
    value: float | None = None
    histogram: HistogramValue | None = None
    timestamp_ms: int | None = None


@dataclass
class MetricFamily:
    """Metrics sharing one fully-qualified name."""

    name: str
    help: str = ""
    type: str = "untyped"
    metrics: list[Metric] = field(default_factory=list)


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty name components with "_"; empty name gives ""."""
    if not name:
        return ""
    return "_".join(part for part in (namespace, subsystem, name) if part)


def sort_label_pairs(pairs: list[LabelPair]) -> list[LabelPair]:
    """Return the label pairs sorted by name."""
    return sorted(pairs, key=lambda pair: pair.name)


@dataclass
class InvalidMetric:
    """A metric whose write always raises the stored error."""

    desc: Any
    error: Exception

    def write(self) -> Metric:
        """Raise the stored error; a non-exception error becomes a RuntimeError."""
        error = self.error
        if not isinstance(error, BaseException):
            error = RuntimeError(str(error))
        raise error


def _to_millis(timestamp: datetime) -> int:
    if timestamp.tzinfo is None:
        timestamp = timestamp.astimezone()
    return (timestamp - _EPOCH) // timedelta(milliseconds=1)


@dataclass
class TimestampedMetric:
    """Wraps a metric and stamps its written form with an explicit time."""

    metric: _Writable
    timestamp: datetime

    def write(self) -> Metric:
        written = self.metric.write()
        return replace(written, timestamp_ms=_to_millis(self.timestamp))


def new_metric_with_timestamp(timestamp: datetime, metric: _Writable) -> TimestampedMetric:
    """Wrap ``metric`` so it is written with ``timestamp``, rounded down to ms."""
    return TimestampedMetric(metric=metric, timestamp=timestamp)


def metric_less(a: Metric, b: Metric) -> bool:
    """Order metrics by label values, then by timestamp with missing last."""
    if len(a.labels) != len(b.labels):
        return len(a.labels) < len(b.labels)
    for pair_a, pair_b in zip(a.labels, b.labels):
        if pair_a.value != pair_b.value:
            return pair_a.value < pair_b.value
    if a.timestamp_ms is None:
        return False
    if b.timestamp_ms is None:
        return True
    return a.timestamp_ms < b.timestamp_ms


def _compare(a: Metric, b: Metric) -> int:
    if metric_less(a, b):
        return -1
    if metric_less(b, a):
        return 1
    return 0


def normalize_metric_families(families_by_name: dict[str, MetricFamily]) -> list[MetricFamily]:
    """Drop empty families, sort the rest by name and their metrics by labels."""
    for family in families_by_name.values():
        family.metrics = sorted(family.metrics, key=cmp_to_key(_compare))
    return [
        families_by_name[name]
        for name in sorted(families_by_name)
        if families_by_name[name].metrics
    ]