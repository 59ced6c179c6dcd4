from __future__ import annotations

from types import SimpleNamespace

import pytest

from subcost.business.subscription.aggregator import (
    INT64_MAX,
    check_total,
    contribution,
    overlap_months,
    overlaps_window,
    total_for_window,
)
from subcost.business.subscription.errors import AggregationOverflowError
from subcost.business.subscription.month import MonthValue, parse_month


def _record(price: int, start: str, end: str | None = None) -> SimpleNamespace:
    return SimpleNamespace(
        price=price,
        start_month=parse_month(start),
        end_month=parse_month(end) if end is not None else None,
    )


def _m(raw: str) -> MonthValue:
    return parse_month(raw)


def test_closed_record_inside_window_bills_every_month() -> None:
    assert overlap_months(_m("07-2025"), _m("09-2025"), _m("01-2025"), _m("12-2025")) == 3


def test_record_is_clipped_on_both_sides() -> None:
    assert overlap_months(_m("01-2024"), _m("12-2026"), _m("03-2025"), _m("05-2025")) == 3


def test_open_ended_record_runs_to_window_end() -> None:
    assert overlap_months(_m("07-2025"), None, _m("01-2025"), _m("12-2025")) == 6


def test_single_month_overlap_counts_once() -> None:
    assert overlap_months(_m("07-2025"), _m("07-2025"), _m("07-2025"), _m("07-2025")) == 1
    assert overlap_months(_m("01-2025"), _m("07-2025"), _m("07-2025"), _m("12-2025")) == 1


def test_disjoint_record_bills_nothing() -> None:
    assert overlap_months(_m("01-2024"), _m("06-2024"), _m("07-2025"), _m("12-2025")) == 0
    assert overlap_months(_m("01-2026"), None, _m("07-2025"), _m("12-2025")) == 0


def test_overlaps_window_handles_half_open_windows() -> None:
    start, end = _m("03-2025"), _m("05-2025")
    assert overlaps_window(start, end, None, None)
    assert overlaps_window(start, end, _m("05-2025"), None)
    assert not overlaps_window(start, end, _m("06-2025"), None)
    assert overlaps_window(start, end, None, _m("03-2025"))
    assert not overlaps_window(start, end, None, _m("02-2025"))
    assert overlaps_window(start, None, _m("01-2030"), None)


def test_contribution_multiplies_price_by_months() -> None:
    record = _record(499, "07-2025", "09-2025")
    assert contribution(record, _m("08-2025"), _m("12-2025")) == 998


def test_total_for_window_folds_all_records() -> None:
    records = [
        _record(400, "07-2025", "09-2025"),
        _record(100, "08-2025"),
        _record(999, "01-2020", "12-2020"),
        _record(0, "07-2025"),
    ]
    assert total_for_window(records, _m("07-2025"), _m("09-2025")) == 400 * 3 + 100 * 2


def test_total_for_window_of_nothing_is_zero() -> None:
    assert total_for_window([], _m("01-2025"), _m("12-2025")) == 0


def test_check_total_accepts_int64_bounds() -> None:
    assert check_total(INT64_MAX) == INT64_MAX
    assert check_total(-INT64_MAX - 1) == -INT64_MAX - 1


def test_total_for_window_raises_when_sum_leaves_int64_range() -> None:
    records = [_record(INT64_MAX // 2, "01-2025"), _record(INT64_MAX // 2, "01-2025")]
    with pytest.raises(AggregationOverflowError):
        total_for_window(records, _m("01-2025"), _m("02-2025"))


def test_overflow_error_is_a_builtin_overflow() -> None:
    with pytest.raises(OverflowError):
        check_total(INT64_MAX + 1)
