from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from subcost.business.subscription.aggregator import billed_total_expression, check_total
from subcost.business.subscription.errors import AggregationOverflowError, NotFoundError, StoreError
from subcost.business.subscription.filters import (
    LIST_DEFAULT_LIMIT,
    LIST_MAX_LIMIT,
    SCAN_DEFAULT_LIMIT,
    SubscriptionFilter,
    apply_filter,
    apply_page,
)
from subcost.business.subscription.models import Subscription, utcnow


logger = logging.getLogger("subcost.subscriptions.store")

_OVERFLOW_MARKERS = ("overflow", "out of range")


@contextmanager
def _store_errors(session: Session, operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        logger.error("store.failed", extra={"action": operation, "error": str(exc)})
        raise StoreError(f"subscription store {operation} failed") from exc


class SubscriptionRepository:
    """SQLAlchemy-backed record store for subscriptions."""

    def __init__(self, *, list_default_limit: int = LIST_DEFAULT_LIMIT, list_max_limit: int = LIST_MAX_LIMIT) -> None:
        self.list_default_limit = list_default_limit
        self.list_max_limit = list_max_limit

    def insert(self, session: Session, subscription: Subscription) -> Subscription:
        with _store_errors(session, "insert"):
            session.add(subscription)
            session.commit()
            session.refresh(subscription)
        return subscription

    def find_by_id(self, session: Session, subscription_id: uuid.UUID) -> Subscription | None:
        with _store_errors(session, "find_by_id"):
            return session.get(Subscription, subscription_id)

    def apply_update(self, session: Session, subscription_id: uuid.UUID, changes: dict[str, Any]) -> datetime:
        updated_at = utcnow()
        with _store_errors(session, "update"):
            result = session.execute(
                update(Subscription)
                .where(Subscription.id == subscription_id)
                .values(**changes, updated_at=updated_at)
            )
            if result.rowcount == 0:
                session.rollback()
                raise NotFoundError(subscription_id)
            session.commit()
        return updated_at

    def delete(self, session: Session, subscription_id: uuid.UUID) -> bool:
        with _store_errors(session, "delete"):
            result = session.execute(delete(Subscription).where(Subscription.id == subscription_id))
            session.commit()
        return result.rowcount > 0

    def query(self, session: Session, spec: SubscriptionFilter) -> list[Subscription]:
        stmt = apply_filter(select(Subscription), spec).order_by(Subscription.created_at.asc(), Subscription.id.asc())
        stmt = apply_page(stmt, spec, default_limit=self.list_default_limit, max_limit=self.list_max_limit)
        with _store_errors(session, "query"):
            return list(session.scalars(stmt).all())

    def find_for_period(self, session: Session, spec: SubscriptionFilter) -> list[Subscription]:
        stmt = apply_filter(select(Subscription), spec).order_by(Subscription.id.asc())
        stmt = apply_page(stmt, spec, default_limit=SCAN_DEFAULT_LIMIT)
        with _store_errors(session, "find_for_period"):
            return list(session.scalars(stmt).all())

    def iter_for_period(self, session: Session, spec: SubscriptionFilter, *, batch_size: int = SCAN_DEFAULT_LIMIT) -> Iterator[Subscription]:
        stmt = apply_filter(select(Subscription), spec).order_by(Subscription.id.asc())
        with _store_errors(session, "scan"):
            yield from session.scalars(stmt.execution_options(yield_per=batch_size))

    def count_matching(self, session: Session, spec: SubscriptionFilter) -> int:
        stmt = apply_filter(select(func.count()).select_from(Subscription), spec)
        with _store_errors(session, "count"):
            return int(session.scalar(stmt) or 0)

    def aggregate_sum(self, session: Session, spec: SubscriptionFilter) -> int:
        if spec.window_from is None or spec.window_to is None:
            return 0

        stmt = apply_filter(
            select(billed_total_expression(spec.window_from, spec.window_to)).select_from(Subscription),
            spec,
        )
        try:
            with _store_errors(session, "aggregate_sum"):
                raw_total = session.scalar(stmt)
        except StoreError as exc:
            cause = exc.__cause__
            if isinstance(cause, DBAPIError) and any(marker in str(cause.orig).lower() for marker in _OVERFLOW_MARKERS):
                raise AggregationOverflowError("billed total exceeds the 64-bit range") from cause
            raise
        return check_total(self._to_int(raw_total))

    @staticmethod
    def _to_int(value: object) -> int:
        if value is None:
            return 0
        if isinstance(value, float):
            # SQLite promotes overflowing integer arithmetic to REAL.
            raise AggregationOverflowError(f"billed total {value!r} is not an exact integer")
        return int(value)  # type: ignore[call-overload]
