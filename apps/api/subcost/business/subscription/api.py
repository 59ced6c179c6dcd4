from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from subcost.business.subscription.errors import FormatError, ValidationError
from subcost.business.subscription.filters import SubscriptionFilter
from subcost.business.subscription.month import MonthValue
from subcost.business.subscription.schemas import (
    ErrorResponse,
    SubscriptionCreate,
    SubscriptionRead,
    SubscriptionUpdate,
    TotalResponse,
)
from subcost.business.subscription.service import subscription_service
from subcost.core.config import get_settings
from subcost.core.database import get_db


router = APIRouter(
    prefix="/api/subscriptions",
    tags=["subscriptions"],
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
    },
)


def _parse_window(raw_from: str | None, raw_to: str | None) -> tuple[MonthValue | None, MonthValue | None]:
    errors: dict[str, str] = {}
    bounds: dict[str, MonthValue | None] = {"from": None, "to": None}
    for name, raw in (("from", raw_from), ("to", raw_to)):
        if not raw:
            continue
        try:
            bounds[name] = MonthValue.parse(raw)
        except FormatError:
            errors[name] = "expected MM-YYYY"
    if errors:
        raise ValidationError(errors, "window bounds must be in format MM-YYYY")
    return bounds["from"], bounds["to"]


def _as_int(raw: str | None) -> int | None:
    try:
        return int(raw) if raw else None
    except ValueError:
        return None


def _page(raw_limit: str | None, raw_offset: str | None) -> tuple[int, int]:
    """Unparsable or out-of-range paging values fall back to the defaults."""
    settings = get_settings()
    limit, offset = _as_int(raw_limit), _as_int(raw_offset)
    resolved_limit = limit if limit is not None and limit > 0 else settings.list_default_limit
    resolved_offset = offset if offset is not None and offset >= 0 else 0
    return min(resolved_limit, settings.list_max_limit), resolved_offset


@router.post(
    "",
    response_model=SubscriptionRead,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
def create_subscription(payload: SubscriptionCreate, db: Session = Depends(get_db)) -> SubscriptionRead:
    return subscription_service.create_subscription(db, payload)


@router.get("", response_model=list[SubscriptionRead], response_model_exclude_none=True)
def list_subscriptions(
    response: Response,
    user_id: uuid.UUID | None = Query(default=None),
    service_name: str | None = Query(default=None),
    window_from: str | None = Query(default=None, alias="from", examples=["07-2025"]),
    window_to: str | None = Query(default=None, alias="to", examples=["12-2025"]),
    limit: str | None = Query(default=None),
    offset: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[SubscriptionRead]:
    parsed_from, parsed_to = _parse_window(window_from, window_to)
    resolved_limit, resolved_offset = _page(limit, offset)
    spec = SubscriptionFilter(
        owner_id=user_id,
        name=service_name or None,
        window_from=parsed_from,
        window_to=parsed_to,
        limit=resolved_limit,
        offset=resolved_offset,
    )

    total = subscription_service.count_subscriptions(db, spec)
    response.headers["X-Total-Count"] = str(total)
    return subscription_service.list_subscriptions(db, spec)


@router.get("/sum", response_model=TotalResponse)
def sum_subscriptions(
    window_from: str | None = Query(default=None, alias="from", examples=["07-2025"]),
    window_to: str | None = Query(default=None, alias="to", examples=["09-2025"]),
    user_id: uuid.UUID | None = Query(default=None),
    service_name: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> TotalResponse:
    if not window_from or not window_to:
        raise ValidationError(
            {"from": "required", "to": "required"},
            "from and to query params required, format MM-YYYY",
            code="invalid_request",
        )

    parsed_from, parsed_to = _parse_window(window_from, window_to)
    spec = SubscriptionFilter(
        owner_id=user_id,
        name=service_name or None,
        window_from=parsed_from,
        window_to=parsed_to,
    )
    return TotalResponse(total=subscription_service.sum_subscriptions(db, spec))


@router.get(
    "/{subscription_id}",
    response_model=SubscriptionRead,
    response_model_exclude_none=True,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
def get_subscription(subscription_id: uuid.UUID, db: Session = Depends(get_db)) -> SubscriptionRead:
    return subscription_service.get_subscription(db, subscription_id)


@router.put(
    "/{subscription_id}",
    response_model=SubscriptionRead,
    response_model_exclude_none=True,
    responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}},
)
def update_subscription(
    subscription_id: uuid.UUID,
    payload: SubscriptionUpdate,
    db: Session = Depends(get_db),
) -> SubscriptionRead:
    return subscription_service.update_subscription(db, subscription_id, payload)


@router.delete("/{subscription_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_subscription(subscription_id: uuid.UUID, db: Session = Depends(get_db)) -> Response:
    subscription_service.delete_subscription(db, subscription_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
