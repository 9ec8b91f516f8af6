"""Prometheus-style histograms, metric model, process metrics and HTTP instrumentation helpers."""

__version__ = "0.1.0"

__all__ = [
    "delegator",
    "histogram",
    "http",
    "instrument_client",
    "instrument_server",
    "labels",
    "model",
    "observer",
    "process",
]