"""Response-writer wrapper that records the status code and bytes written."""

from __future__ import annotations

from collections.abc import Callable
from functools import lru_cache
from typing import Any

STATUS_OK = 200


class ResponseWriterDelegator:
    """Forwards to a response writer while tracking status and bytes written.

    ``observe_write_header`` is called with the status code the first time a
    header is written; later calls still reach the wrapped writer.
    """

    def __init__(
        self, writer: Any, observe_write_header: Callable[[int], object] | None = None
    ) -> None:
        self.writer = writer
        self.observe_write_header = observe_write_header
        self.status = 0
        self.written = 0
        self.wrote_header = False

    @property
    def headers(self) -> Any:
        return self.writer.headers

    def write_header(self, code: int) -> None:
        if self.observe_write_header is not None and not self.wrote_header:
            self.observe_write_header(code)
        self.status = code
        self.wrote_header = True
        self.writer.write_header(code)

    def _ensure_header(self) -> None:
        if not self.wrote_header:
            self.write_header(STATUS_OK)

    def write(self, data: bytes) -> int:
        self._ensure_header()
        count = self.writer.write(data)
        self.written += count
        return count


class _CloseNotifier(ResponseWriterDelegator):
    def close_notify(self) -> Any:
        return self.writer.close_notify()


class _Flusher(ResponseWriterDelegator):
    def flush(self) -> None:
        self._ensure_header()
        self.writer.flush()


class _Hijacker(ResponseWriterDelegator):
    def hijack(self) -> Any:
        return self.writer.hijack()


class _ReaderFrom(ResponseWriterDelegator):
    def read_from(self, reader: Any) -> int:
        self._ensure_header()
        count = self.writer.read_from(reader)
        self.written += count
        return count


class _Pusher(ResponseWriterDelegator):
    def push(self, target: str, opts: Any = None) -> Any:
        return self.writer.push(target, opts)


_CAPABILITIES: tuple[tuple[str, type[ResponseWriterDelegator]], ...] = (
    ("close_notify", _CloseNotifier),
    ("flush", _Flusher),
    ("hijack", _Hijacker),
    ("read_from", _ReaderFrom),
    ("push", _Pusher),
)


@lru_cache(maxsize=None)
def _delegator_class(capabilities: tuple[str, ...]) -> type[ResponseWriterDelegator]:
    if not capabilities:
        return ResponseWriterDelegator
    mixins = tuple(mixin for name, mixin in _CAPABILITIES if name in capabilities)
    return type(f"ResponseWriterDelegator[{','.join(capabilities)}]", mixins, {})


def new_delegator(
    writer: Any, observe_write_header: Callable[[int], object] | None = None
) -> ResponseWriterDelegator:
    """Wrap ``writer``, exposing exactly the optional methods it offers."""
    capabilities = tuple(
        name for name, _ in _CAPABILITIES if callable(getattr(writer, name, None))
    )
    return _delegator_class(capabilities)(writer, observe_write_header)