"""Histograms that count observations in configurable buckets."""

from __future__ import annotations

import math
import re
import threading
from bisect import bisect_left
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone

from .labels import (
    check_label_name,
    make_inconsistent_cardinality_error,
    validate_label_values,
)
from .model import Bucket, Exemplar, HistogramValue, LabelPair, Metric, build_fq_name

BUCKET_LABEL = "le"
DEF_BUCKETS: tuple[float, ...] = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10)
EXEMPLAR_MAX_RUNES = 64

_METRIC_NAME_RE = re.compile(r"[a-zA-Z_:][a-zA-Z0-9_:]*")
_BUCKET_LABEL_ERROR = f'"{BUCKET_LABEL}" is not allowed as label name in histograms'


def linear_buckets(start: float, width: float, count: int) -> list[float]:
    """Return ``count`` bounds starting at ``start``, each ``width`` apart."""
    if count < 1:
        raise ValueError("linear_buckets needs a positive count")
    buckets = []
    for _ in range(count):
        buckets.append(start)
        start += width
    return buckets


def exponential_buckets(start: float, factor: float, count: int) -> list[float]:
    """Return ``count`` bounds starting at ``start``, each ``factor`` times the previous."""
    if count < 1:
        raise ValueError("exponential_buckets needs a positive count")
    if start <= 0:
        raise ValueError("exponential_buckets needs a positive start value")
    if factor <= 1:
        raise ValueError("exponential_buckets needs a factor greater than 1")
    buckets = []
    for _ in range(count):
        buckets.append(start)
        start *= factor
    return buckets


@dataclass
class HistogramOpts:
    """Options for creating a histogram; only ``name`` is mandatory."""

    name: str = ""
    namespace: str = ""
    subsystem: str = ""
    help: str = ""
    const_labels: Mapping[str, str] = field(default_factory=dict)
    buckets: Sequence[float] | None = None

    @property
    def fq_name(self) -> str:
        return build_fq_name(self.namespace, self.subsystem, self.name)


def _make_label_pairs(
    const_labels: Mapping[str, str],
    label_names: Sequence[str],
    label_values: Sequence[str],
) -> list[LabelPair]:
    pairs = [LabelPair(name, value) for name, value in const_labels.items()]
    pairs.extend(LabelPair(name, value) for name, value in zip(label_names, label_values))
    return sorted(pairs, key=lambda pair: pair.name)


def _new_exemplar(value: float, timestamp: datetime, labels: Mapping[str, str]) -> Exemplar:
    runes = 0
    for name, label_value in labels.items():
        if not check_label_name(name):
            raise ValueError(f"exemplar label name {name!r} is invalid")
        runes += len(name) + len(label_value)
    if runes > EXEMPLAR_MAX_RUNES:
        raise ValueError(
            f"exemplar labels have {runes} runes, exceeding the limit of {EXEMPLAR_MAX_RUNES}"
        )
    pairs = sorted((LabelPair(n, v) for n, v in labels.items()), key=lambda p: p.name)
    return Exemplar(labels=pairs, value=value, timestamp=timestamp)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Histogram:
    """Counts observations in buckets and tracks their sum and count.

    Bucket upper bounds are inclusive; the +Inf bucket is implicit. The
    ``now`` attribute supplies exemplar timestamps.
    """

    def __init__(
        self,
        opts: HistogramOpts,
        label_names: Sequence[str] = (),
        label_values: Sequence[str] = (),
    ) -> None:
        label_names = tuple(label_names)
        label_values = tuple(label_values)
        self.fq_name = opts.fq_name
        self.help = opts.help
        if len(label_names) != len(label_values):
            raise make_inconsistent_cardinality_error(self.fq_name, label_names, label_values)
        if BUCKET_LABEL in label_names or BUCKET_LABEL in opts.const_labels:
            raise ValueError(_BUCKET_LABEL_ERROR)

        bounds = [float(b) for b in (opts.buckets if opts.buckets else DEF_BUCKETS)]
        for lower, upper in zip(bounds, bounds[1:]):
            if lower >= upper:
                raise ValueError(
                    f"histogram buckets must be in increasing order: {lower:f} >= {upper:f}"
                )
        if bounds and bounds[-1] == math.inf:
            bounds.pop()

        self.upper_bounds: tuple[float, ...] = tuple(bounds)
        self.label_pairs = _make_label_pairs(opts.const_labels, label_names, label_values)
        self.now: Callable[[], datetime] = _utc_now
        self._lock = threading.Lock()
        self._counts = [0] * len(self.upper_bounds)
        self._count = 0
        self._sum = 0.0
        self._exemplars: list[Exemplar | None] = [None] * (len(self.upper_bounds) + 1)

    def _find_bucket(self, value: float) -> int:
        if math.isnan(value):
            return len(self.upper_bounds)
        return bisect_left(self.upper_bounds, value)

    def _observe(self, value: float, bucket: int) -> None:
        with self._lock:
            if bucket < len(self.upper_bounds):
                self._counts[bucket] += 1
            self._sum += value
            self._count += 1

    def observe(self, value: float) -> None:
        """Add one observation."""
        self._observe(value, self._find_bucket(value))

    def observe_with_exemplar(self, value: float, labels: Mapping[str, str] | None) -> None:
        """Add an observation and replace its bucket's exemplar.

        With ``labels`` of ``None`` the current exemplar stays in place.
        Invalid labels raise ``ValueError`` after the value is observed.
        """
        bucket = self._find_bucket(value)
        self._observe(value, bucket)
        if labels is None:
            return
        exemplar = _new_exemplar(value, self.now(), labels)
        with self._lock:
            self._exemplars[bucket] = exemplar

    def exemplars(self) -> list[Exemplar | None]:
        """Return the exemplar of every bucket, the +Inf bucket last."""
        with self._lock:
            return list(self._exemplars)

    def write(self) -> Metric:
        """Return the current state as a metric with cumulative buckets."""
        with self._lock:
            count = self._count
            total = self._sum
            counts = list(self._counts)
            exemplars = list(self._exemplars)
        buckets = []
        cumulative = 0
        for bound, bucket_count, exemplar in zip(self.upper_bounds, counts, exemplars):
            cumulative += bucket_count
            buckets.append(
                Bucket(cumulative_count=cumulative, upper_bound=bound, exemplar=exemplar)
            )
        if exemplars[-1] is not None:
            buckets.append(
                Bucket(cumulative_count=count, upper_bound=math.inf, exemplar=exemplars[-1])
            )
        return Metric(
            labels=list(self.label_pairs),
            histogram=HistogramValue(sample_count=count, sample_sum=total, buckets=buckets),
        )


def new_histogram(opts: HistogramOpts) -> Histogram:
    """Create a histogram without variable labels."""
    return Histogram(opts)


@dataclass
class ConstHistogram:
    """A histogram with fixed count, sum and cumulative bucket counts."""

    fq_name: str
    count: int
    total: float
    buckets: Mapping[float, int]
    label_pairs: list[LabelPair]

    def write(self) -> Metric:
        buckets = [
            Bucket(cumulative_count=count, upper_bound=bound)
            for bound, count in sorted(self.buckets.items(), key=lambda item: item[0])
        ]
        return Metric(
            labels=list(self.label_pairs),
            histogram=HistogramValue(
                sample_count=self.count, sample_sum=self.total, buckets=buckets
            ),
        )


def new_const_histogram(
    fq_name: str,
    count: int,
    total: float,
    buckets: Mapping[float, int],
    label_names: Sequence[str] = (),
    label_values: Sequence[str] = (),
    const_labels: Mapping[str, str] | None = None,
) -> ConstHistogram:
    """Create a fixed histogram; ``buckets`` maps upper bounds to cumulative counts."""
    const_labels = dict(const_labels or {})
    if _METRIC_NAME_RE.fullmatch(fq_name) is None:
        raise ValueError(f"{fq_name!r} is not a valid metric name")
    for name in (*const_labels, *label_names):
        if not check_label_name(name):
            raise ValueError(f"{name!r} is not a valid label name for metric {fq_name!r}")
    validate_label_values(list(label_values), len(label_names))
    return ConstHistogram(
        fq_name=fq_name,
        count=count,
        total=total,
        buckets=dict(buckets),
        label_pairs=_make_label_pairs(const_labels, label_names, label_values),
    )