"""Collector of CPU, memory and file-descriptor metrics of a process."""

from __future__ import annotations

import json
import os
import re
import sys
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

import psutil

from .model import InvalidMetric, Metric

WINDOWS_MAX_HANDLES = 16 * 1024 * 1024

_PID_RE = re.compile(r"[+-]?[0-9]+")
_READ_ERRORS = (psutil.Error, OSError, ValueError)


class CollectError(Exception):
    """Raised when process metrics or a pid cannot be read."""


@dataclass(frozen=True)
class ProcessCollectorOpts:
    """Options for a process collector.

    ``pid_fn`` returns the pid to inspect and raises on failure; by default
    the pid of the current process at construction time is used.
    ``namespace`` prefixes every metric name with ``namespace_``. With
    ``report_errors`` each failure is collected as an invalid metric,
    otherwise failures leave the collected metrics incomplete.
    """

    pid_fn: Callable[[], int] | None = None
    namespace: str = ""
    report_errors: bool = False


@dataclass(frozen=True)
class ProcessSample:
    """One collected process metric."""

    name: str
    help: str
    kind: str
    value: float

    def write(self) -> Metric:
        return Metric(value=self.value)


@dataclass(frozen=True)
class _Desc:
    name: str
    help: str
    kind: str

    def sample(self, value: float) -> ProcessSample:
        return ProcessSample(self.name, self.help, self.kind, float(value))


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _rlimit_value(value: int, infinity: int) -> float:
    return -1.0 if value == infinity or value < 0 else float(value)


def _virtual_size(memory: object) -> float:
    if sys.platform == "win32":
        private = getattr(memory, "private", None)
        if private is not None:
            return float(private)
    return float(getattr(memory, "vms"))


def _open_fds(proc: psutil.Process) -> int:
    if sys.platform == "win32":
        return proc.num_handles()
    return proc.num_fds()


def _limits(proc: psutil.Process) -> tuple[float, float | None]:
    """Return the open-files limit and the address-space limit, if known."""
    if sys.platform == "win32":
        return float(WINDOWS_MAX_HANDLES), None
    if hasattr(proc, "rlimit"):
        infinity = psutil.RLIM_INFINITY
        open_files = proc.rlimit(psutil.RLIMIT_NOFILE)[0]
        address_space = proc.rlimit(psutil.RLIMIT_AS)[0]
        return _rlimit_value(open_files, infinity), _rlimit_value(address_space, infinity)
    if proc.pid == os.getpid():
        import resource

        infinity = resource.RLIM_INFINITY
        open_files = resource.getrlimit(resource.RLIMIT_NOFILE)[0]
        address_space = resource.getrlimit(resource.RLIMIT_AS)[0]
        return _rlimit_value(open_files, infinity), _rlimit_value(address_space, infinity)
    raise CollectError("process limits not supported on this platform")


class ProcessCollector:
    """Collects CPU time, memory, file descriptors and start time of a process."""

    def __init__(self, opts: ProcessCollectorOpts | None = None) -> None:
        opts = opts or ProcessCollectorOpts()
        prefix = f"{opts.namespace}_" if opts.namespace else ""
        self.report_errors = opts.report_errors
        if opts.pid_fn is None:
            pid = os.getpid()
            self.pid_fn: Callable[[], int] = lambda: pid
        else:
            self.pid_fn = opts.pid_fn

        self._cpu_total = _Desc(
            prefix + "process_cpu_seconds_total",
            "Total user and system CPU time spent in seconds.",
            "counter",
        )
        self._open_fds = _Desc(
            prefix + "process_open_fds", "Number of open file descriptors.", "gauge"
        )
        self._max_fds = _Desc(
            prefix + "process_max_fds", "Maximum number of open file descriptors.", "gauge"
        )
        self._vsize = _Desc(
            prefix + "process_virtual_memory_bytes", "Virtual memory size in bytes.", "gauge"
        )
        self._max_vsize = _Desc(
            prefix + "process_virtual_memory_max_bytes",
            "Maximum amount of virtual memory available in bytes.",
            "gauge",
        )
        self._rss = _Desc(
            prefix + "process_resident_memory_bytes", "Resident memory size in bytes.", "gauge"
        )
        self._start_time = _Desc(
            prefix + "process_start_time_seconds",
            "Start time of the process since unix epoch in seconds.",
            "gauge",
        )

    def describe(self) -> list[tuple[str, str]]:
        """Return the name and help text of every metric this collector offers."""
        return [
            (desc.name, desc.help)
            for desc in (
                self._cpu_total,
                self._open_fds,
                self._max_fds,
                self._vsize,
                self._max_vsize,
                self._rss,
                self._start_time,
            )
        ]

    def _report(self, desc: _Desc | None, error: Exception) -> Iterator[InvalidMetric]:
        if self.report_errors:
            yield InvalidMetric(desc=desc, error=error)

    def collect(self) -> Iterator[ProcessSample | InvalidMetric]:
        """Yield the current metrics of the process, and errors if reported."""
        try:
            proc = psutil.Process(self.pid_fn())
        except Exception as err:  # pid_fn is user code and may fail in any way
            yield from self._report(None, err)
            return

        try:
            times = proc.cpu_times()
            memory = proc.memory_info()
        except _READ_ERRORS as err:
            yield from self._report(None, err)
        else:
            yield self._cpu_total.sample(times.user + times.system)
            yield self._vsize.sample(_virtual_size(memory))
            yield self._rss.sample(memory.rss)
            try:
                start_time = proc.create_time()
            except _READ_ERRORS as err:
                yield from self._report(self._start_time, err)
            else:
                yield self._start_time.sample(start_time)

        try:
            fds = _open_fds(proc)
        except _READ_ERRORS as err:
            yield from self._report(self._open_fds, err)
        else:
            yield self._open_fds.sample(fds)

        try:
            max_fds, max_vsize = _limits(proc)
        except (CollectError, *_READ_ERRORS) as err:
            yield from self._report(None, err)
        else:
            yield self._max_fds.sample(max_fds)
            if max_vsize is not None:
                yield self._max_vsize.sample(max_vsize)


def new_process_collector(opts: ProcessCollectorOpts | None = None) -> ProcessCollector:
    """Create a process collector with the given options."""
    return ProcessCollector(opts)


def new_pid_file_fn(pid_file_path: str | os.PathLike[str]) -> Callable[[], int]:
    """Return a function that reads a pid from ``pid_file_path`` on each call."""
    path = os.fspath(pid_file_path)

    def read_pid() -> int:
        try:
            content = Path(path).read_bytes()
        except OSError as err:
            raise CollectError(f"can't read pid file {_quote(path)}: {err}") from err
        text = content.decode("utf-8", errors="replace").strip()
        if _PID_RE.fullmatch(text) is None:
            raise CollectError(
                f"can't parse pid file {_quote(path)}: invalid pid {_quote(text)}"
            )
        return int(text)

    return read_pid