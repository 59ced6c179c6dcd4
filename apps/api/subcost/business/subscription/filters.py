from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any

from sqlalchemy import and_, or_
from sqlalchemy.sql import Select

from subcost.business.subscription.models import Subscription
from subcost.business.subscription.month import MonthValue


LIST_DEFAULT_LIMIT = 100
LIST_MAX_LIMIT = 1000
SCAN_DEFAULT_LIMIT = 1000


@dataclass(frozen=True, slots=True)
class SubscriptionFilter:
    """Optional predicates shared by listing, counting and aggregation."""

    owner_id: uuid.UUID | None = None
    name: str | None = None
    window_from: MonthValue | None = None
    window_to: MonthValue | None = None
    limit: int | None = None
    offset: int = 0


def apply_filter(stmt: Select[Any], spec: SubscriptionFilter) -> Select[Any]:
    if spec.owner_id is not None:
        stmt = stmt.where(Subscription.owner_id == spec.owner_id)
    if spec.name is not None:
        stmt = stmt.where(Subscription.service_name == spec.name)

    window_from = spec.window_from.to_date() if spec.window_from is not None else None
    window_to = spec.window_to.to_date() if spec.window_to is not None else None
    if window_from is not None and window_to is not None:
        stmt = stmt.where(
            and_(
                Subscription.start_date <= window_to,
                or_(Subscription.end_date.is_(None), Subscription.end_date >= window_from),
            )
        )
    elif window_from is not None:
        stmt = stmt.where(or_(Subscription.end_date.is_(None), Subscription.end_date >= window_from))
    elif window_to is not None:
        stmt = stmt.where(Subscription.start_date <= window_to)
    return stmt


def apply_page(stmt: Select[Any], spec: SubscriptionFilter, *, default_limit: int, max_limit: int | None = None) -> Select[Any]:
    limit = spec.limit if spec.limit is not None and spec.limit > 0 else default_limit
    if max_limit is not None:
        limit = min(limit, max_limit)
    if spec.offset > 0:
        stmt = stmt.offset(spec.offset)
    return stmt.limit(limit)
