"""
Modelos SQLAlchemy — exportar todos para que Alembic los detecte.
"""

from app.models.finance import (
    AccountType,
    FinancialAccount,
    Movement,
    MovementCategory,
    MovementStatus,
    MovementType,
    PaymentMethod,
)
from app.models.rendicion import Rendicion, RendicionStatus
from app.models.card import (
    CardExpense,
    CardStatus,
    CardTopUp,
    CardType,
    ExpenseCategory,
    PrepaidCard,
)

__all__ = [
    "AccountType",
    "FinancialAccount",
    "Movement",
    "MovementCategory",
    "MovementStatus",
    "MovementType",
    "PaymentMethod",
    "Rendicion",
    "RendicionStatus",
    "CardExpense",
    "CardStatus",
    "CardTopUp",
    "CardType",
    "ExpenseCategory",
    "PrepaidCard",
]
