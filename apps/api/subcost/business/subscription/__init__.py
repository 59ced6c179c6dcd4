from subcost.business.subscription.api import router
from subcost.business.subscription.errors import (
    AggregationOverflowError,
    FormatError,
    NotFoundError,
    StoreError,
    SubscriptionError,
    ValidationError,
)
from subcost.business.subscription.filters import SubscriptionFilter
from subcost.business.subscription.models import Subscription
from subcost.business.subscription.month import MonthValue, format_month, months_between, parse_month
from subcost.business.subscription.schemas import (
    SubscriptionCreate,
    SubscriptionRead,
    SubscriptionUpdate,
    TotalResponse,
)
from subcost.business.subscription.service import SubscriptionService, subscription_service

__all__ = [
    "router",
    "Subscription",
    "SubscriptionFilter",
    "MonthValue",
    "parse_month",
    "format_month",
    "months_between",
    "SubscriptionCreate",
    "SubscriptionUpdate",
    "SubscriptionRead",
    "TotalResponse",
    "SubscriptionService",
    "subscription_service",
    "SubscriptionError",
    "FormatError",
    "ValidationError",
    "NotFoundError",
    "AggregationOverflowError",
    "StoreError",
]
