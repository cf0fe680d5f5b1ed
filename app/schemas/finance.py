"""
Schemas para cuentas financieras, movimientos y transferencias.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.models.finance import (
    AccountType,
    MovementCategory,
    MovementStatus,
    MovementType,
    PaymentMethod,
)


# ── Account ───────────────────────────────────────────


class AccountCreate(BaseModel):
    """Request para crear una cuenta financiera."""
    name: str = Field(..., min_length=3, max_length=100)
    account_type: AccountType
    bank_name: str | None = Field(None, max_length=100)
    account_number: str | None = Field(None, max_length=50)
    cbu: str | None = Field(None, max_length=30)
    alias: str | None = Field(None, max_length=50)
    currency: str | None = Field(None, min_length=3, max_length=3)
    opening_balance: Decimal = Field(Decimal("0"), decimal_places=2)


class AccountUpdate(BaseModel):
    name: str | None = Field(None, min_length=3, max_length=100)
    bank_name: str | None = Field(None, max_length=100)
    account_number: str | None = Field(None, max_length=50)
    cbu: str | None = Field(None, max_length=30)
    alias: str | None = Field(None, max_length=50)
    opening_balance: Decimal | None = Field(None, decimal_places=2)


class AccountResponse(BaseModel):
    id: int
    name: str
    account_type: AccountType
    bank_name: str | None = None
    account_number: str | None = None
    cbu: str | None = None
    alias: str | None = None
    currency: str
    opening_balance: Decimal
    current_balance: Decimal
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ── Movement ──────────────────────────────────────────


class MovementCreate(BaseModel):
    """Request para registrar un movimiento manual."""
    account_id: int = Field(..., gt=0)
    movement_type: MovementType
    category: MovementCategory | None = None
    payment_method: PaymentMethod = PaymentMethod.TRANSFERENCIA
    amount: Decimal = Field(..., gt=0, decimal_places=2, description="Monto (siempre positivo)")
    description: str = Field(..., min_length=3, max_length=500)
    voucher: str | None = Field(None, max_length=100)
    movement_date: date
    employee_id: int | None = Field(None, gt=0)
    pending: bool = Field(False, description="Registrar en estado PENDIENTE")


class MovementUpdate(BaseModel):
    """Edición de un movimiento PENDIENTE."""
    category: MovementCategory | None = None
    payment_method: PaymentMethod | None = None
    amount: Decimal | None = Field(None, gt=0, decimal_places=2)
    description: str | None = Field(None, min_length=3, max_length=500)
    voucher: str | None = Field(None, max_length=100)
    movement_date: date | None = None


class MovementVoid(BaseModel):
    reason: str | None = Field(None, max_length=500)


class MovementResponse(BaseModel):
    id: int
    account_id: int
    movement_type: MovementType
    category: MovementCategory | None = None
    payment_method: PaymentMethod
    amount: Decimal
    description: str
    voucher: str | None = None
    movement_date: date
    status: MovementStatus
    employee_id: int | None = None
    transfer_ref: str | None = None
    rendicion_id: int | None = None
    void_reason: str | None = None
    created_by: int
    created_at: datetime

    model_config = {"from_attributes": True}


class MovementListResponse(BaseModel):
    """Respuesta paginada de movimientos."""
    items: list[MovementResponse]
    total: int
    page: int
    size: int
    pages: int


class AccountDetailResponse(AccountResponse):
    recent_movements: list[MovementResponse] = []


# ── Transfer ──────────────────────────────────────────


class TransferCreate(BaseModel):
    source_account_id: int = Field(..., gt=0)
    destination_account_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    description: str = Field(..., min_length=3, max_length=400)
    movement_date: date
    voucher: str | None = Field(None, max_length=100)


class TransferResponse(BaseModel):
    transfer_ref: str
    outgoing: MovementResponse
    incoming: MovementResponse


# ── Dashboard ─────────────────────────────────────────


class AccountBalance(BaseModel):
    id: int
    name: str
    account_type: AccountType
    currency: str
    current_balance: Decimal

    model_config = {"from_attributes": True}


class MonthTotals(BaseModel):
    amount: Decimal
    count: int


class FinanceDashboard(BaseModel):
    total_balance: Decimal
    income_month: MonthTotals
    expense_month: MonthTotals
    balance_month: Decimal
    accounts: list[AccountBalance]
    recent_movements: list[MovementResponse]


class BalancesResponse(BaseModel):
    accounts: list[AccountBalance]
    total: Decimal


