import os

import pytest

from promkit.model import InvalidMetric, Metric
from promkit.process import (
    CollectError,
    ProcessCollector,
    ProcessCollectorOpts,
    ProcessSample,
    new_pid_file_fn,
    new_process_collector,
)

COMMON_NAMES = {
    "process_cpu_seconds_total",
    "process_max_fds",
    "process_open_fds",
    "process_virtual_memory_bytes",
    "process_resident_memory_bytes",
    "process_start_time_seconds",
}


def _by_name(samples):
    return {sample.name: sample for sample in samples}


def test_collect_current_process_default_names():
    samples = list(new_process_collector(ProcessCollectorOpts()).collect())
    assert all(isinstance(s, ProcessSample) for s in samples)
    by_name = _by_name(samples)
    assert COMMON_NAMES <= set(by_name)
    assert by_name["process_cpu_seconds_total"].value >= 0
    assert by_name["process_cpu_seconds_total"].kind == "counter"
    assert by_name["process_open_fds"].value >= 1
    assert by_name["process_virtual_memory_bytes"].value >= 1
    assert by_name["process_resident_memory_bytes"].value >= 1
    assert by_name["process_start_time_seconds"].value >= 1e9
    max_fds = by_name["process_max_fds"].value
    assert max_fds == -1 or max_fds >= 1


def test_collect_with_namespace_and_reported_errors():
    collector = new_process_collector(
        ProcessCollectorOpts(pid_fn=os.getpid, namespace="foobar", report_errors=True)
    )
    samples = list(collector.collect())
    assert not any(isinstance(s, InvalidMetric) for s in samples)
    names = set(_by_name(samples))
    assert {"foobar_" + name for name in COMMON_NAMES} <= names
    assert all(name.startswith("foobar_process_") for name in names)


def test_max_vsize_is_minus_one_or_positive_when_present():
    by_name = _by_name(ProcessCollector().collect())
    value = by_name.get("process_virtual_memory_max_bytes", ProcessSample("", "", "gauge", -1)).value
    assert value == -1 or value >= 1


def test_broken_pid_fn_reports_one_invalid_metric():
    def broken():
        raise CollectError("boo")

    collector = new_process_collector(ProcessCollectorOpts(pid_fn=broken, report_errors=True))
    collected = list(collector.collect())
    assert len(collected) == 1
    assert isinstance(collected[0], InvalidMetric)
    with pytest.raises(CollectError, match="boo"):
        collected[0].write()


def test_broken_pid_fn_without_reporting_collects_nothing():
    def broken():
        raise CollectError("boo")

    collector = new_process_collector(ProcessCollectorOpts(pid_fn=broken))
    assert list(collector.collect()) == []


def test_describe_lists_all_metrics_in_order():
    names = [name for name, _ in ProcessCollector(ProcessCollectorOpts(namespace="ns")).describe()]
    assert names == [
        "ns_process_cpu_seconds_total",
        "ns_process_open_fds",
        "ns_process_max_fds",
        "ns_process_virtual_memory_bytes",
        "ns_process_virtual_memory_max_bytes",
        "ns_process_resident_memory_bytes",
        "ns_process_start_time_seconds",
    ]


def test_describe_help_texts():
    described = dict(ProcessCollector().describe())
    assert described["process_open_fds"] == "Number of open file descriptors."
    assert described["process_start_time_seconds"] == (
        "Start time of the process since unix epoch in seconds."
    )


def test_default_pid_fn_returns_own_pid():
    assert ProcessCollector().pid_fn() == os.getpid()


def test_sample_write():
    sample = ProcessSample("x", "help", "gauge", 3.5)
    assert sample.write() == Metric(value=3.5)


def test_pid_file_missing(tmp_path):
    fn = new_pid_file_fn(tmp_path / "mockPidFile")
    with pytest.raises(CollectError, match="^can't read pid file"):
        fn()


def test_pid_file_bad_content(tmp_path):
    path = tmp_path / "mockPidFile"
    path.write_text("abc")
    with pytest.raises(CollectError, match="^can't parse pid file"):
        new_pid_file_fn(path)()


def test_pid_file_correct_content(tmp_path):
    path = tmp_path / "mockPidFile"
    path.write_text("123")
    assert new_pid_file_fn(path)() == 123


def test_pid_file_is_read_on_each_call(tmp_path):
    path = tmp_path / "mockPidFile"
    fn = new_pid_file_fn(str(path))
    path.write_text(" 456\n")
    assert fn() == 456
    path.write_text("789")
    assert fn() == 789


def test_collector_with_pid_file(tmp_path):
    path = tmp_path / "pid"
    path.write_text(str(os.getpid()))
    collector = ProcessCollector(
        ProcessCollectorOpts(pid_fn=new_pid_file_fn(path), report_errors=True)
    )
    names = set(_by_name(collector.collect()))
    assert COMMON_NAMES <= names