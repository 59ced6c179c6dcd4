from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class SubscriptionCreate(BaseModel):
    service_name: str = Field(examples=["Netflix"])
    price: int = Field(examples=[499])
    user_id: UUID
    start_date: str = Field(examples=["07-2025"])
    end_date: str | None = Field(default=None, examples=["12-2025"])


class SubscriptionUpdate(BaseModel):
    """Sparse update; only fields present in the payload are applied.

    ``end_date`` sent as ``null`` or ``""`` clears the end month, while an
    absent ``end_date`` keeps the stored one.
    """

    service_name: str | None = None
    price: int | None = None
    start_date: str | None = None
    end_date: str | None = None

    @property
    def clears_end_date(self) -> bool:
        return "end_date" in self.model_fields_set and not self.end_date


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    service_name: str
    price: int
    user_id: UUID
    start_date: str = Field(examples=["07-2025"])
    end_date: str | None = Field(default=None, examples=["12-2025"])
    created_at: datetime
    updated_at: datetime


class TotalResponse(BaseModel):
    total: int = Field(examples=[1497])


class ErrorResponse(BaseModel):
    code: str
    message: str
    fields: dict[str, str] | None = None
