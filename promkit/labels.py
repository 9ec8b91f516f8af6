"""Label validation helpers shared by metric implementations."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping, Sequence

RESERVED_LABEL_PREFIX = "__"

_CARDINALITY_MESSAGE = "inconsistent label cardinality"
_LABEL_NAME_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")


class InconsistentCardinalityError(ValueError):
    """Raised when label values do not match the label names of a metric."""


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def _quote_list(items: Sequence[str]) -> str:
    return "[" + " ".join(_quote(item) for item in items) + "]"


def _is_valid_utf8(text: str) -> bool:
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def make_inconsistent_cardinality_error(
    fq_name: str, label_names: Sequence[str], label_values: Sequence[str]
) -> InconsistentCardinalityError:
    """Build the error for a label-value count that differs from the label names."""
    return InconsistentCardinalityError(
        f"{_CARDINALITY_MESSAGE}: {_quote(fq_name)} has {len(label_names)} "
        f"variable labels named {_quote_list(label_names)} but "
        f"{len(label_values)} values {_quote_list(label_values)} were provided"
    )


def validate_values_in_labels(labels: Mapping[str, str], expected_count: int) -> None:
    """Check the number of labels and that every value is valid UTF-8."""
    if len(labels) != expected_count:
        raise InconsistentCardinalityError(
            f"{_CARDINALITY_MESSAGE}: expected {expected_count} label values "
            f"but got {len(labels)} in {dict(labels)!r}"
        )
    for name, value in labels.items():
        if not _is_valid_utf8(value):
            raise ValueError(f"label {name}: value {_quote(value)} is not valid UTF-8")


def validate_label_values(values: Sequence[str], expected_count: int) -> None:
    """Check the number of label values and that each is valid UTF-8."""
    if len(values) != expected_count:
        raise InconsistentCardinalityError(
            f"{_CARDINALITY_MESSAGE}: expected {expected_count} label values "
            f"but got {len(values)} in {list(values)!r}"
        )
    for value in values:
        if not _is_valid_utf8(value):
            raise ValueError(f"label value {_quote(value)} is not valid UTF-8")


def is_valid_label_name(name: str) -> bool:
    """Return whether ``name`` is syntactically a valid label name."""
    return _LABEL_NAME_RE.fullmatch(name) is not None


def check_label_name(name: str) -> bool:
    """Return whether ``name`` is valid and not reserved for internal use."""
    return is_valid_label_name(name) and not name.startswith(RESERVED_LABEL_PREFIX)