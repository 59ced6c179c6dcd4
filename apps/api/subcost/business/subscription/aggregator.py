"""Billed totals over a month window.

A record valid over ``[start, end]`` (``end`` absent means open-ended) is
clipped to the window ``[window_from, window_to]``; every whole month that
survives the clip is billed at the record's monthly price. Both bounds are
inclusive, so a record overlapping a single month is billed once.

The same arithmetic is available twice: as an in-process fold over loaded
records and as a SQL expression the database evaluates in one aggregate
query. Both must return identical totals for identical inputs.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol

from sqlalchemy import BigInteger, Integer, case, cast, extract, func
from sqlalchemy.sql.elements import ColumnElement

from subcost.business.subscription.errors import AggregationOverflowError
from subcost.business.subscription.models import Subscription
from subcost.business.subscription.month import MonthValue, months_between


INT64_MAX = 2**63 - 1


class BilledRecord(Protocol):
    price: int

    @property
    def start_month(self) -> MonthValue: ...

    @property
    def end_month(self) -> MonthValue | None: ...


def overlaps_window(
    start: MonthValue,
    end: MonthValue | None,
    window_from: MonthValue | None,
    window_to: MonthValue | None,
) -> bool:
    if window_to is not None and start > window_to:
        return False
    if window_from is not None and end is not None and end < window_from:
        return False
    return True


def overlap_months(
    start: MonthValue,
    end: MonthValue | None,
    window_from: MonthValue,
    window_to: MonthValue,
) -> int:
    clipped_start = max(start, window_from)
    clipped_end = min(end if end is not None else window_to, window_to)
    if clipped_end < clipped_start:
        return 0
    return months_between(clipped_start, clipped_end) + 1


def contribution(record: BilledRecord, window_from: MonthValue, window_to: MonthValue) -> int:
    if not overlaps_window(record.start_month, record.end_month, window_from, window_to):
        return 0
    return record.price * overlap_months(record.start_month, record.end_month, window_from, window_to)


def check_total(total: int) -> int:
    if total > INT64_MAX or total < -INT64_MAX - 1:
        raise AggregationOverflowError(f"billed total {total} exceeds the 64-bit range")
    return total


def total_for_window(records: Iterable[BilledRecord], window_from: MonthValue, window_to: MonthValue) -> int:
    total = 0
    for record in records:
        total = check_total(total + contribution(record, window_from, window_to))
    return total


def _month_index(column: Any) -> ColumnElement[int]:
    return cast(extract("year", column), Integer) * 12 + cast(extract("month", column), Integer) - 1


def billed_amount_expression(window_from: MonthValue, window_to: MonthValue) -> ColumnElement[int]:
    """Per-row billed amount for the window, mirroring :func:`contribution`."""
    from_index = window_from.index
    to_index = window_to.index

    start_index = _month_index(Subscription.start_date)
    end_index = func.coalesce(_month_index(Subscription.end_date), to_index)

    clipped_start = case((start_index > from_index, start_index), else_=from_index)
    clipped_end = case((end_index < to_index, end_index), else_=to_index)

    return case(
        (clipped_end >= clipped_start, cast(Subscription.price, BigInteger) * (clipped_end - clipped_start + 1)),
        else_=0,
    )


def billed_total_expression(window_from: MonthValue, window_to: MonthValue) -> ColumnElement[int]:
    return func.coalesce(func.sum(billed_amount_expression(window_from, window_to)), 0)
