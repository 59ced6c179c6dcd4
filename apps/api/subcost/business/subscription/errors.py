from __future__ import annotations


class SubscriptionError(Exception):
    """Base error for subscription domain failures."""


class FormatError(SubscriptionError, ValueError):
    """Raised when month text does not match MM-YYYY."""

    def __init__(self, value: str, reason: str = "expected MM-YYYY") -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"invalid month '{value}': {reason}")


class ValidationError(SubscriptionError):
    """Raised when field or cross-field invariants are violated."""

    def __init__(self, fields: dict[str, str], message: str = "validation failed", *, code: str = "invalid_field") -> None:
        self.fields = dict(fields)
        self.message = message
        self.code = code
        super().__init__(f"{message}: {', '.join(f'{key}={value}' for key, value in sorted(self.fields.items()))}")


class NotFoundError(SubscriptionError):
    def __init__(self, subscription_id: object) -> None:
        self.subscription_id = subscription_id
        super().__init__(f"subscription '{subscription_id}' not found")


class AggregationOverflowError(SubscriptionError, OverflowError):
    """Raised when a billed total leaves the signed 64-bit range."""


class StoreError(SubscriptionError):
    """Raised when the record store fails; the original error is chained."""
