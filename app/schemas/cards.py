"""
Schemas para tarjetas precargables/corporativas, cargas y gastos.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.card import CardStatus, CardType, ExpenseCategory
from app.models.finance import MovementStatus


# ── Card ──────────────────────────────────────────────


class CardCreate(BaseModel):
    card_type: CardType
    employee_id: int = Field(..., gt=0)
    account_id: int = Field(..., gt=0, description="Cuenta financiera de respaldo")
    card_number: str | None = Field(None, max_length=30)
    alias: str | None = Field(None, max_length=100)


class CardUpdate(BaseModel):
    employee_id: int | None = Field(None, gt=0)
    card_number: str | None = Field(None, max_length=30)
    alias: str | None = Field(None, max_length=100)
    status: CardStatus | None = None


class CardResponse(BaseModel):
    id: int
    card_type: CardType
    status: CardStatus
    alias: str | None = None
    card_number: str | None = None
    account_id: int
    employee_id: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CardListResponse(BaseModel):
    items: list[CardResponse]
    total: int
    page: int
    size: int
    pages: int


class CardsSummary(BaseModel):
    """Resumen global de tarjetas."""
    total: int
    precargables: int
    corporativas: int
    active: int
    prepaid_balance: Decimal
    month_expenses: Decimal
    month_expense_count: int
    pending_rendiciones: int


# ── Top-up ────────────────────────────────────────────


class TopUpCreate(BaseModel):
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    top_up_date: date
    description: str | None = Field(None, max_length=500)
    voucher: str | None = Field(None, max_length=100)


class TopUpResponse(BaseModel):
    id: int
    card_id: int
    amount: Decimal
    top_up_date: date
    description: str | None = None
    voucher: str | None = None
    movement_id: int
    movement_status: MovementStatus
    registered_by: int
    created_at: datetime


class TopUpListResponse(BaseModel):
    items: list[TopUpResponse]
    total: int
    page: int
    size: int
    pages: int


# ── Expense ───────────────────────────────────────────


class ExpenseCreate(BaseModel):
    category: ExpenseCategory = ExpenseCategory.OTRO
    category_other: str | None = Field(None, max_length=100)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    expense_date: date
    concept: str = Field(..., min_length=1, max_length=500)


class ExpenseVoid(BaseModel):
    reason: str | None = Field(None, max_length=500)


class ExpenseResponse(BaseModel):
    id: int
    card_id: int
    category: ExpenseCategory
    category_other: str | None = None
    amount: Decimal
    expense_date: date
    concept: str
    movement_id: int
    movement_status: MovementStatus
    rendicion_id: int | None = None
    registered_by: int
    created_at: datetime


class ExpenseListResponse(BaseModel):
    items: list[ExpenseResponse]
    total: int
    page: int
    size: int
    pages: int
