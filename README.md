# promkit

Building blocks for Prometheus-style metrics in Python programs:

- `promkit.histogram`: histograms with configurable buckets and exemplars,
  bucket generators and constant histograms.
- `promkit.model`: the data model of written metrics (`Metric`,
  `MetricFamily`, `LabelPair`, `Bucket`, `HistogramValue`, `Exemplar`),
  fully-qualified name building, metric ordering and family normalisation.
- `promkit.labels`: label name and label value validation.
- `promkit.observer`: the `Observer` and `ExemplarObserver` protocols and the
  `ObserverFunc` adapter.
- `promkit.process`: CPU time, memory, open file descriptors, limits and
  start time of a process, read through `psutil`.
- `promkit.delegator`, `promkit.instrument_server`,
  `promkit.instrument_client`: middleware that records in-flight counts,
  request counts, durations and sizes for HTTP handlers and outgoing requests.
- `promkit.http`: helpers for a metrics endpoint: gzip negotiation, error
  responses, error-handling modes and a concurrent-request limiter.

## Installation

```
pip install promkit
```

## Histograms

```python
from promkit.histogram import HistogramOpts, new_histogram, linear_buckets

hist = new_histogram(HistogramOpts(
    name="request_duration_seconds",
    help="Request latencies.",
    buckets=linear_buckets(0.1, 0.1, 5),
))
hist.observe(0.27)
hist.observe_with_exemplar(0.45, {"trace_id": "abc123"})

metric = hist.write()
print(metric.histogram.sample_count, metric.histogram.sample_sum)
for bucket in metric.histogram.buckets:
    print(bucket.upper_bound, bucket.cumulative_count)
```

- Without `buckets`, the default bounds `DEF_BUCKETS` (0.005 to 10) are used.
- Bounds must be strictly increasing, otherwise `ValueError` is raised. A
  trailing `+Inf` bound is implicit and dropped.
- The label name `le` is not allowed.
- `exponential_buckets(start, factor, count)` builds geometric bounds.
- `observe_with_exemplar` replaces the exemplar of the bucket the value falls
  in. With `None` as labels the current exemplar stays. Invalid label names,
  or more than 64 characters of names and values together, raise `ValueError`.
- `write()` lists the `+Inf` bucket only when it holds an exemplar.
- `Histogram.exemplars()` returns the exemplar of every bucket, `+Inf` last.

`new_const_histogram(fq_name, count, total, buckets, label_names,
label_values, const_labels)` builds a fixed histogram from a mapping of upper
bounds to cumulative counts. It validates the metric name, the label names
and the number of label values. Its `write()` returns the buckets sorted by
bound.

## Names, labels and ordering

```python
from promkit.model import build_fq_name
from promkit.labels import check_label_name

build_fq_name("app", "http", "requests_total")  # "app_http_requests_total"
build_fq_name("app", "", "")                     # ""
check_label_name("method")                       # True
check_label_name("__reserved")                   # False
```

`validate_label_values` and `validate_values_in_labels` raise
`InconsistentCardinalityError` (a `ValueError`) when the count is wrong.

`normalize_metric_families` drops empty families, sorts the rest by name and
sorts their metrics by label values, then by timestamp with missing
timestamps last.

`new_metric_with_timestamp(datetime, metric)` wraps a metric so that its
written form carries the time in milliseconds. `InvalidMetric` raises its
stored error from `write()`.

## Process metrics

```python
from promkit.process import ProcessCollectorOpts, new_process_collector, new_pid_file_fn

collector = new_process_collector(ProcessCollectorOpts(namespace="myapp"))
print(collector.describe())          # [(name, help), ...]
for sample in collector.collect():
    print(sample.name, sample.kind, sample.value)

other = new_process_collector(ProcessCollectorOpts(
    pid_fn=new_pid_file_fn("/run/other.pid"),
    report_errors=True,
))
```

- `collect()` yields `ProcessSample` objects.
- With `report_errors=True`, each failure is yielded as an `InvalidMetric`;
  otherwise failures are skipped silently.
- `new_pid_file_fn` returns a function that raises `CollectError` when the
  pid file cannot be read or parsed.
- On Windows the open-file limit is reported as a fixed 16 Mi handles, and no
  virtual-memory limit is reported.

## HTTP server instrumentation

A handler is any callable taking `(writer, request)`. A writer has a
`headers` mapping, a `write_header(status)` method and a `write(data)` method
that returns the number of bytes written. A `Request` holds the method, URL,
protocol, headers, host and content length.

The metrics passed in are duck-typed:

- an observer vector or counter vector has `with_labels(labels)`, which
  returns an object with `observe(value)` or `inc()`;
- a gauge has `inc()` and `dec()`.

The variable label names are given explicitly. Only `code` and `method` are
allowed; `check_labels` raises `ValueError` for any other name or for a
duplicate name.

```python
from promkit.instrument_server import (
    Request,
    instrument_handler_counter,
    instrument_handler_response_size,
)

def hello(writer, request):
    writer.write(b"OK")

chain = instrument_handler_counter(
    requests_total, ["code", "method"],
    instrument_handler_response_size(response_sizes, [], hello),
)
chain(writer, Request(method="GET", url="/"))
```

Also available:

- `instrument_handler_in_flight`
- `instrument_handler_duration`
- `instrument_handler_time_to_write_header`
- `instrument_handler_request_size`

A status code that is never set counts as `200`. Methods are lower-cased.
`new_delegator` wraps a writer to record its status and bytes written. It
exposes `close_notify`, `flush`, `hijack`, `read_from` and `push` only when
the wrapped writer has them.

## HTTP client instrumentation

A round tripper has `round_trip(request)` and returns a response with a
`status_code`. `RoundTripperFunc` adapts a plain callable.

```python
from promkit.instrument_client import (
    RoundTripperFunc,
    instrument_round_tripper_counter,
    instrument_round_tripper_duration,
    instrument_round_tripper_in_flight,
)

transport = instrument_round_tripper_in_flight(
    in_flight_gauge,
    instrument_round_tripper_counter(counter, ["code", "method"], RoundTripperFunc(send)),
)
response = transport.round_trip(request)
```

When the wrapped round tripper raises, nothing is counted or observed.

## Metrics endpoint helpers

`promkit.http` provides the following:

- `gzip_accepted(headers)` tells whether a request accepts gzip.
- `http_error(writer, error)` removes any `Content-Encoding` header and
  answers 500 with a plain-text message.
- `InFlightLimiter(limit)` offers a non-blocking `try_acquire()` and
  `release()`.
- `HandlerOpts` and `HandlerErrorHandling` record how an endpoint should
  behave.

## What this package does not do

- There is no metric registry.
- There are no counter, gauge or summary types, and no metric vectors. The
  instrumentation middleware works with objects you supply.
- There is no text or OpenMetrics exposition encoder.
- There is no ready-made metrics endpoint or HTTP server. `HandlerOpts` only
  holds options; nothing in the package serves metrics from them.
- There is no HTTP connection tracing.

## Running the tests

```
pip install -e ".[test]"
pytest
```