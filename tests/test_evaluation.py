"""Tests for pure condition evaluation and alert messages."""

from types import SimpleNamespace

import pytest

from automize.core.enums import Condition, normalize_condition
from automize.services.evaluation import (
    evaluate,
    evaluate_compound,
    evaluate_condition,
    format_value,
    to_number,
)


def _rule(field_name="roas_timeframe", condition="less_than", threshold="1.5", name="Low ROAS"):
    return SimpleNamespace(name=name, field_name=field_name, condition=condition, threshold_value=threshold)


def test_normalize_condition_accepts_symbols_and_names():
    assert normalize_condition(">") == Condition.GREATER_THAN
    assert normalize_condition("<=") == Condition.LESS_THAN_OR_EQUAL
    assert normalize_condition("Changed_By_Percent") == Condition.CHANGED_BY_PERCENT
    with pytest.raises(ValueError):
        normalize_condition("between")


def test_to_number_handles_strings_and_rejects_garbage():
    assert to_number("1,250.5") == 1250.5
    assert to_number(3) == 3.0
    assert to_number("abc") is None
    assert to_number(True) is None
    assert to_number(float("nan")) is None


def test_format_value_drops_trailing_zero():
    assert format_value(2.0) == "2"
    assert format_value(1.25) == "1.25"
    assert format_value(None) == "null"
    assert format_value(False) == "false"


@pytest.mark.parametrize(
    "condition,current,threshold,expected",
    [
        (Condition.LESS_THAN, 1.2, "1.5", True),
        (Condition.LESS_THAN, 1.5, "1.5", False),
        (Condition.LESS_THAN_OR_EQUAL, 1.5, "1.5", True),
        (Condition.GREATER_THAN, "250", "100", True),
        (Condition.GREATER_THAN_OR_EQUAL, 99, "100", False),
        (Condition.EQUALS, "Failed", "Failed", True),
        (Condition.EQUALS, 2.0, "2", True),
        (Condition.NOT_EQUALS, "completed", "failed", True),
        (Condition.CONTAINS, "Token expired for act_1", "expired", True),
        (Condition.NOT_CONTAINS, "all good", "expired", True),
        (Condition.IS_NULL, None, None, True),
        (Condition.IS_NULL, "  ", None, True),
        (Condition.IS_NOT_NULL, "x", None, True),
        (Condition.EQUALS, True, "true", True),
    ],
)
def test_evaluate_condition(condition, current, threshold, expected):
    assert evaluate_condition(condition, current, threshold) is expected


def test_missing_or_non_numeric_value_never_matches():
    assert evaluate_condition(Condition.LESS_THAN, None, "1.5") is False
    assert evaluate_condition(Condition.GREATER_THAN, "n/a", "1.5") is False
    assert evaluate_condition(Condition.EQUALS, None, "x") is False


def test_dates_compare_when_values_are_not_numeric():
    assert evaluate_condition(Condition.LESS_THAN, "2025-01-31", "2025-02-01") is True
    assert evaluate_condition(Condition.GREATER_THAN, "2025-01-31", "2025-02-01") is False


def test_changed_needs_a_previous_value():
    assert evaluate_condition(Condition.CHANGED, "active", None) is False
    assert evaluate_condition(Condition.CHANGED, "active", None, previous="paused") is True
    assert evaluate_condition(Condition.CHANGED, 10, None, previous=10.0) is False


def test_changed_by_percent():
    assert evaluate_condition(Condition.CHANGED_BY_PERCENT, 130, "25", previous=100) is True
    assert evaluate_condition(Condition.CHANGED_BY_PERCENT, 70, "25", previous=100) is True
    assert evaluate_condition(Condition.CHANGED_BY_PERCENT, 110, "25", previous=100) is False
    # sin base no hay porcentaje
    assert evaluate_condition(Condition.CHANGED_BY_PERCENT, 10, "25", previous=0) is False


def test_evaluate_message_has_current_value_and_threshold():
    res = evaluate({"roas_timeframe": 1.2, "account_name": "Acme Store"}, _rule())

    assert res.matches is True
    assert res.current_value == "1.2"
    assert "1.2" in res.message
    assert "1.5" in res.message
    assert res.message.startswith("Low ROAS: roas timeframe is less than 1.5")
    assert res.message.endswith("[Acme Store]")


def test_evaluate_no_match_returns_empty_message():
    res = evaluate({"roas_timeframe": 3.1}, _rule())
    assert res.matches is False
    assert res.message == ""


def test_evaluate_unknown_condition_does_not_raise():
    res = evaluate({"roas_timeframe": 1}, _rule(condition="between"))
    assert res.matches is False


def test_evaluate_changed_reports_previous_value():
    rule = _rule(field_name="rebill_status", condition="changed", threshold=None, name="Rebill moved")
    res = evaluate({"rebill_status": "failed"}, rule, previous_row={"rebill_status": "ok"})

    assert res.matches is True
    assert res.previous_value == "ok"
    assert "(previous: ok)" in res.message


def test_compound_and_requires_every_clause():
    clauses = [
        _rule(field_name="roas_timeframe", condition="less_than", threshold="1.5"),
        _rule(field_name="ad_spend_timeframe", condition="greater_than", threshold="500"),
    ]
    row = {"roas_timeframe": 1.1, "ad_spend_timeframe": 100}

    assert evaluate_compound("Burning spend", clauses, row, "AND").matches is False

    row["ad_spend_timeframe"] = 900
    res = evaluate_compound("Burning spend", clauses, row, "AND")
    assert res.matches is True
    assert " AND " in res.message
    assert res.current_value == "1.1, 900"


def test_compound_or_lists_only_triggered_clauses():
    clauses = [
        _rule(field_name="roas_timeframe", condition="less_than", threshold="1.5"),
        _rule(field_name="ctr", condition="less_than", threshold="0.5"),
    ]
    res = evaluate_compound("Weak ads", clauses, {"roas_timeframe": 2.0, "ctr": 0.3}, "OR")

    assert res.matches is True
    assert "ctr is less than 0.5" in res.message
    assert "roas" not in res.message


def test_compound_without_clauses_never_matches():
    assert evaluate_compound("Empty", [], {"x": 1}, "OR").matches is False
