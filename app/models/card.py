"""
Modelos PrepaidCard + CardTopUp + CardExpense — Tarjetas precargables y corporativas.

Cada carga y cada gasto se refleja como un movimiento sobre la cuenta
financiera que respalda a la tarjeta.
"""

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class CardType(str, enum.Enum):
    """Solo PRECARGABLE admite cargas."""
    PRECARGABLE = "precargable"
    CORPORATIVA = "corporativa"


class CardStatus(str, enum.Enum):
    ACTIVA = "activa"
    SUSPENDIDA = "suspendida"
    BAJA = "baja"


class ExpenseCategory(str, enum.Enum):
    """Rubro del gasto con tarjeta."""
    GAS = "gas"
    FERRETERIA = "ferreteria"
    ESTACIONAMIENTO = "estacionamiento"
    LAVADERO = "lavadero"
    NAFTA = "nafta"
    REPUESTOS = "repuestos"
    MATERIALES_ELECTRICOS = "materiales_electricos"
    PEAJES = "peajes"
    COMIDA = "comida"
    HERRAMIENTAS = "herramientas"
    OTRO = "otro"


# ── PrepaidCard ───────────────────────────────────────


class PrepaidCard(Base):
    __tablename__ = "prepaid_cards"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_type: Mapped[CardType] = mapped_column(
        Enum(CardType, values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    status: Mapped[CardStatus] = mapped_column(
        Enum(CardStatus, values_callable=lambda e: [x.value for x in e]),
        nullable=False, default=CardStatus.ACTIVA
    )
    alias: Mapped[str | None] = mapped_column(String(100))
    card_number: Mapped[str | None] = mapped_column(String(30))
    account_id: Mapped[int] = mapped_column(
        ForeignKey("financial_accounts.id"), nullable=False,
        comment="Cuenta financiera que respalda la tarjeta"
    )
    employee_id: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="Empleado asignado"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # ── Relaciones ───────────────────────────────────
    account: Mapped["FinancialAccount"] = relationship("FinancialAccount")  # noqa: F821

    __table_args__ = (
        Index("idx_card_employee", "employee_id"),
        Index("idx_card_number", "card_number"),
    )

    @property
    def label(self) -> str:
        return self.alias or self.card_number or f"#{self.id}"

    def __repr__(self) -> str:
        return f"<PrepaidCard {self.id} [{self.card_type.value}] {self.label}>"


# ── CardTopUp ─────────────────────────────────────────


class CardTopUp(Base):
    __tablename__ = "card_top_ups"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[int] = mapped_column(ForeignKey("prepaid_cards.id"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    top_up_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[str | None] = mapped_column(String(500))
    voucher: Mapped[str | None] = mapped_column(String(100))
    movement_id: Mapped[int] = mapped_column(
        ForeignKey("movements.id"), nullable=False, unique=True,
        comment="Movimiento de ingreso generado"
    )
    registered_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    movement: Mapped["Movement"] = relationship("Movement", lazy="joined")  # noqa: F821

    __table_args__ = (
        Index("idx_top_up_card_date", "card_id", "top_up_date"),
    )


# ── CardExpense ───────────────────────────────────────


class CardExpense(Base):
    __tablename__ = "card_expenses"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[int] = mapped_column(ForeignKey("prepaid_cards.id"), nullable=False)
    category: Mapped[ExpenseCategory] = mapped_column(
        Enum(ExpenseCategory, values_callable=lambda e: [x.value for x in e]),
        nullable=False, default=ExpenseCategory.OTRO
    )
    category_other: Mapped[str | None] = mapped_column(String(100))
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    concept: Mapped[str] = mapped_column(Text, nullable=False)
    movement_id: Mapped[int] = mapped_column(
        ForeignKey("movements.id"), nullable=False, unique=True,
        comment="Movimiento de egreso generado"
    )
    rendicion_id: Mapped[int | None] = mapped_column(
        ForeignKey("rendiciones.id"),
        comment="NULL = gasto sin rendir"
    )
    registered_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    movement: Mapped["Movement"] = relationship("Movement", lazy="joined")  # noqa: F821

    __table_args__ = (
        Index("idx_expense_card_date", "card_id", "expense_date"),
        Index("idx_expense_rendicion", "rendicion_id"),
    )

    def __repr__(self) -> str:
        return f"<CardExpense {self.id} {self.amount} rendicion={self.rendicion_id}>"
