from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any

from opentelemetry import trace
from sqlalchemy.orm import Session

from subcost.business.subscription.aggregator import total_for_window
from subcost.business.subscription.errors import AggregationOverflowError, FormatError, NotFoundError, ValidationError
from subcost.business.subscription.filters import SubscriptionFilter
from subcost.business.subscription.models import Subscription, as_utc
from subcost.business.subscription.month import MonthValue
from subcost.business.subscription.repository import SubscriptionRepository
from subcost.business.subscription.schemas import SubscriptionCreate, SubscriptionRead, SubscriptionUpdate
from subcost.core.config import get_settings
from subcost.metrics import (
    observe_subscription_sum,
    observe_subscription_sum_overflow,
    observe_subscription_write,
)


logger = logging.getLogger("subcost.subscriptions")
tracer = trace.get_tracer("subcost.subscriptions")

NAME_MAX_LENGTH = 255
PRICE_MAX = 2_147_483_647

SUM_STRATEGIES = {"database", "in_process"}

_COLUMN_FOR_FIELD = {
    "service_name": "service_name",
    "price": "price",
    "start": "start_date",
    "end": "end_date",
}


@dataclass(frozen=True, slots=True)
class SubscriptionState:
    """Mutable fields of a subscription, validated as one unit."""

    service_name: str
    price: int
    start: MonthValue
    end: MonthValue | None

    @classmethod
    def from_model(cls, subscription: Subscription) -> SubscriptionState:
        return cls(
            service_name=subscription.service_name,
            price=subscription.price,
            start=subscription.start_month,
            end=subscription.end_month,
        )

    def to_columns(self) -> dict[str, Any]:
        return {
            "service_name": self.service_name,
            "price": self.price,
            "start_date": self.start.to_date(),
            "end_date": self.end.to_date() if self.end is not None else None,
        }


@dataclass(slots=True)
class SubscriptionService:
    repository: SubscriptionRepository = SubscriptionRepository()
    sum_strategy: str | None = None

    def create_subscription(self, session: Session, payload: SubscriptionCreate) -> SubscriptionRead:
        errors: dict[str, str] = {}
        service_name = self._clean_name(payload.service_name, errors)
        price = self._check_price(payload.price, errors)
        start = self._parse_month("start_date", payload.start_date, errors)
        end = self._parse_month("end_date", payload.end_date, errors) if payload.end_date is not None else None
        if errors:
            raise ValidationError(errors)

        state = SubscriptionState(service_name=service_name, price=price, start=start, end=end)
        self._check_interval(state)

        subscription = Subscription(id=uuid.uuid4(), owner_id=payload.user_id, **state.to_columns())
        subscription = self.repository.insert(session, subscription)

        observe_subscription_write("create")
        logger.info(
            "subscription.created",
            extra={"subscription_id": str(subscription.id), "owner_id": str(subscription.owner_id)},
        )
        return self._to_read(subscription)

    def get_subscription(self, session: Session, subscription_id: uuid.UUID) -> SubscriptionRead:
        return self._to_read(self._get_subscription(session, subscription_id))

    def update_subscription(
        self,
        session: Session,
        subscription_id: uuid.UUID,
        payload: SubscriptionUpdate,
    ) -> SubscriptionRead:
        existing = self._get_subscription(session, subscription_id)
        current = SubscriptionState.from_model(existing)

        errors: dict[str, str] = {}
        overrides: dict[str, Any] = {}
        if payload.service_name is not None:
            overrides["service_name"] = self._clean_name(payload.service_name, errors)
        if payload.price is not None:
            overrides["price"] = self._check_price(payload.price, errors)
        if payload.start_date is not None:
            overrides["start"] = self._parse_month("start_date", payload.start_date, errors)
        if payload.clears_end_date:
            overrides["end"] = None
        elif payload.end_date is not None:
            overrides["end"] = self._parse_month("end_date", payload.end_date, errors)
        if errors:
            raise ValidationError(errors)
        if not overrides:
            return self._to_read(existing)

        candidate = replace(current, **overrides)
        self._check_interval(candidate)

        columns = candidate.to_columns()
        changes = {_COLUMN_FOR_FIELD[key]: columns[_COLUMN_FOR_FIELD[key]] for key in overrides}
        self.repository.apply_update(session, subscription_id, changes)

        observe_subscription_write("update")
        logger.info(
            "subscription.updated",
            extra={"subscription_id": str(subscription_id), "changed_fields": sorted(changes)},
        )
        return self.get_subscription(session, subscription_id)

    def delete_subscription(self, session: Session, subscription_id: uuid.UUID) -> None:
        deleted = self.repository.delete(session, subscription_id)
        if deleted:
            observe_subscription_write("delete")
        logger.info(
            "subscription.deleted",
            extra={"subscription_id": str(subscription_id), "status": "deleted" if deleted else "absent"},
        )

    def list_subscriptions(self, session: Session, spec: SubscriptionFilter) -> list[SubscriptionRead]:
        return [self._to_read(row) for row in self.repository.query(session, spec)]

    def count_subscriptions(self, session: Session, spec: SubscriptionFilter) -> int:
        return self.repository.count_matching(session, spec)

    def sum_subscriptions(self, session: Session, spec: SubscriptionFilter) -> int:
        window_from, window_to = spec.window_from, spec.window_to
        if window_from is None or window_to is None:
            return 0
        if window_from > window_to:
            raise ValidationError(
                {"from": "must be <= to"},
                "'from' must be before or equal to 'to'",
                code="invalid_request",
            )

        strategy = self._resolve_strategy()
        with tracer.start_as_current_span("subscriptions.sum") as span:
            span.set_attribute("subscriptions.sum.strategy", strategy)
            span.set_attribute("subscriptions.sum.window_from", window_from.format())
            span.set_attribute("subscriptions.sum.window_to", window_to.format())
            try:
                if strategy == "in_process":
                    records = self.repository.iter_for_period(session, spec)
                    total = total_for_window(records, window_from, window_to)
                else:
                    total = self.repository.aggregate_sum(session, spec)
            except AggregationOverflowError:
                observe_subscription_sum_overflow(strategy)
                logger.warning(
                    "subscription.sum_overflow",
                    extra={
                        "strategy": strategy,
                        "window_from": window_from.format(),
                        "window_to": window_to.format(),
                    },
                )
                raise
            span.set_attribute("subscriptions.sum.total", total)

        observe_subscription_sum(strategy)
        logger.info(
            "subscription.sum",
            extra={
                "strategy": strategy,
                "window_from": window_from.format(),
                "window_to": window_to.format(),
                "total": total,
            },
        )
        return total

    def _resolve_strategy(self) -> str:
        strategy = self.sum_strategy or get_settings().sum_strategy
        if strategy not in SUM_STRATEGIES:
            raise ValueError(f"unknown sum strategy '{strategy}'")
        return strategy

    def _get_subscription(self, session: Session, subscription_id: uuid.UUID) -> Subscription:
        subscription = self.repository.find_by_id(session, subscription_id)
        if subscription is None:
            raise NotFoundError(subscription_id)
        return subscription

    @staticmethod
    def _clean_name(raw: str, errors: dict[str, str]) -> str | None:
        value = raw.strip()
        if not value or len(value) > NAME_MAX_LENGTH:
            errors["service_name"] = f"required, max {NAME_MAX_LENGTH} chars"
            return None
        return value

    @staticmethod
    def _check_price(value: int, errors: dict[str, str]) -> int | None:
        if value < 0:
            errors["price"] = "must be >= 0"
            return None
        if value > PRICE_MAX:
            errors["price"] = f"must be <= {PRICE_MAX}"
            return None
        return value

    @staticmethod
    def _parse_month(field_name: str, raw: str, errors: dict[str, str]) -> MonthValue | None:
        try:
            return MonthValue.parse(raw)
        except FormatError as exc:
            errors[field_name] = exc.reason
            return None

    @staticmethod
    def _check_interval(state: SubscriptionState) -> None:
        if state.end is not None and state.end < state.start:
            raise ValidationError(
                {"end_date": "must be >= start_date"},
                "end_date must be equal or after start_date",
            )

    @staticmethod
    def _to_read(subscription: Subscription) -> SubscriptionRead:
        end = subscription.end_month
        return SubscriptionRead(
            id=subscription.id,
            service_name=subscription.service_name,
            price=subscription.price,
            user_id=subscription.owner_id,
            start_date=subscription.start_month.format(),
            end_date=end.format() if end is not None else None,
            created_at=as_utc(subscription.created_at),
            updated_at=as_utc(subscription.updated_at),
        )


subscription_service = SubscriptionService()
