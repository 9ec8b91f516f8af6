import pytest

from promkit.labels import (
    InconsistentCardinalityError,
    check_label_name,
    is_valid_label_name,
    make_inconsistent_cardinality_error,
    validate_label_values,
    validate_values_in_labels,
)


def test_cardinality_error_message_names_metric_and_counts():
    err = make_inconsistent_cardinality_error("my_metric", ["code", "method"], ["200"])
    assert isinstance(err, InconsistentCardinalityError)
    text = str(err)
    assert text.startswith("inconsistent label cardinality")
    assert '"my_metric"' in text
    assert '["code" "method"]' in text
    assert '["200"]' in text


def test_validate_label_values_accepts_matching_count():
    assert validate_label_values(["a", "b"], 2) is None


def test_validate_label_values_rejects_wrong_count():
    with pytest.raises(InconsistentCardinalityError) as info:
        validate_label_values(["a"], 2)
    assert "inconsistent label cardinality" in str(info.value)


def test_validate_label_values_rejects_invalid_utf8():
    with pytest.raises(ValueError, match="not valid UTF-8"):
        validate_label_values(["ok", "\udc80"], 2)


def test_validate_values_in_labels_accepts_matching_count():
    assert validate_values_in_labels({"code": "200"}, 1) is None


def test_validate_values_in_labels_rejects_wrong_count():
    with pytest.raises(InconsistentCardinalityError):
        validate_values_in_labels({"code": "200", "method": "get"}, 1)


def test_validate_values_in_labels_rejects_invalid_utf8():
    with pytest.raises(ValueError, match="label code"):
        validate_values_in_labels({"code": "\ud800"}, 1)


@pytest.mark.parametrize("name", ["code", "method", "_x", "a1", "__name__"])
def test_valid_label_names(name):
    assert is_valid_label_name(name) is True


@pytest.mark.parametrize("name", ["", "in-valid", "1abc", "a b"])
def test_invalid_label_names(name):
    assert is_valid_label_name(name) is False
    assert check_label_name(name) is False


def test_check_label_name_rejects_reserved_prefix():
    assert is_valid_label_name("__name__") is True
    assert check_label_name("__name__") is False
    assert check_label_name("code") is True