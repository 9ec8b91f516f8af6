from concurrent.futures import ThreadPoolExecutor

import pytest

from promkit.delegator import new_delegator
from promkit.http import (
    HandlerErrorHandling,
    HandlerOpts,
    InFlightLimiter,
    gzip_accepted,
    http_error,
)

COLLECT_ERROR = (
    'error collecting metric Desc{fqName: "invalid_metric", help: "not helpful", '
    "constLabels: {}, variableLabels: []}: collect error"
)
WANT_ERROR_BODY = (
    "An error has occurred while serving metrics:\n\n"
    'error collecting metric Desc{fqName: "invalid_metric", help: "not helpful", '
    "constLabels: {}, variableLabels: []}: collect error\n"
)


class RecordingWriter:
    def __init__(self):
        self.headers = {}
        self.status = None
        self.body = bytearray()

    def write_header(self, code):
        self.status = code

    def write(self, data):
        self.body.extend(data)
        return len(data)


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ({"Accept-Encoding": "gzip"}, True),
        ({"Accept-Encoding": "deflate, gzip;q=1.0"}, True),
        ({"accept-encoding": " gzip "}, True),
        ({"Accept-Encoding": ["gzip, br"]}, True),
        ({"Accept-Encoding": "gzipx"}, False),
        ({"Accept-Encoding": "deflate, br"}, False),
        ({"Accept-Encoding": ""}, False),
        ({}, False),
    ],
)
def test_gzip_accepted(headers, expected):
    assert gzip_accepted(headers) is expected


def test_http_error_writes_plain_500():
    writer = RecordingWriter()
    writer.headers["Content-Encoding"] = "gzip"
    http_error(writer, RuntimeError(COLLECT_ERROR))
    assert writer.status == 500
    assert writer.body.decode() == WANT_ERROR_BODY
    assert "Content-Encoding" not in writer.headers
    assert writer.headers["Content-Type"] == "text/plain; charset=utf-8"


def test_http_error_removes_encoding_case_insensitively():
    writer = RecordingWriter()
    writer.headers["content-encoding"] = "gzip"
    http_error(writer, "boom")
    assert all(key.lower() != "content-encoding" for key in writer.headers)
    assert writer.body.decode().endswith("boom\n")


def test_http_error_through_delegator_records_status():
    writer = RecordingWriter()
    delegator = new_delegator(writer)
    http_error(delegator, "boom")
    assert delegator.status == 500
    assert writer.status == 500
    assert delegator.written == len(writer.body)


def test_limiter_rejects_over_limit_and_recovers():
    limiter = InFlightLimiter(1)
    assert limiter.try_acquire() is True
    assert limiter.try_acquire() is False
    limiter.release()
    assert limiter.try_acquire() is True


def test_limiter_without_limit_always_admits():
    limiter = InFlightLimiter(0)
    assert all(limiter.try_acquire() for _ in range(100))


def test_limiter_release_without_acquire_raises():
    limiter = InFlightLimiter(2)
    with pytest.raises(ValueError):
        limiter.release()


def test_limiter_concurrent_admission_count():
    limiter = InFlightLimiter(3)
    with ThreadPoolExecutor(max_workers=10) as pool:
        results = list(pool.map(lambda _: limiter.try_acquire(), range(10)))
    assert sorted(results) == [False] * 7 + [True] * 3
    assert limiter.try_acquire() is False


def test_handler_opts_coerces_error_handling():
    opts = HandlerOpts(error_handling=1)
    assert opts.error_handling is HandlerErrorHandling.CONTINUE_ON_ERROR


def test_handler_opts_rejects_unknown_error_handling():
    with pytest.raises(ValueError):
        HandlerOpts(error_handling=7)


def test_handler_opts_defaults_to_http_error():
    opts = HandlerOpts()
    assert opts.error_handling is HandlerErrorHandling.HTTP_ERROR_ON_ERROR
    assert opts.max_requests_in_flight == 0