"""
Schemas para rendiciones de gastos con tarjeta.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.rendicion import RendicionStatus
from app.schemas.cards import ExpenseResponse


class RendicionCreate(BaseModel):
    card_id: int = Field(..., gt=0)
    date_from: date
    date_to: date
    notes: str | None = Field(None, max_length=2000)


class RendicionReject(BaseModel):
    rejection_reason: str = Field(..., max_length=2000)


class RendicionResponse(BaseModel):
    id: int
    code: str | None = None
    card_id: int
    date_from: date
    date_to: date
    total_amount: Decimal
    expense_count: int
    status: RendicionStatus
    notes: str | None = None
    rejection_reason: str | None = None
    created_by: int
    approved_by: int | None = None
    approved_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RendicionDetailResponse(RendicionResponse):
    expenses: list[ExpenseResponse] = []


class RendicionListResponse(BaseModel):
    items: list[RendicionResponse]
    total: int
    page: int
    size: int
    pages: int
