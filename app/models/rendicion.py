"""
Modelo Rendicion — Lote de gastos de una tarjeta presentado para aprobación.

Estados: ABIERTA → CERRADA → APROBADA | RECHAZADA.
A lo sumo una rendición ABIERTA o CERRADA por tarjeta (índice único parcial).
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
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class RendicionStatus(str, enum.Enum):
    ABIERTA = "abierta"
    CERRADA = "cerrada"
    APROBADA = "aprobada"
    RECHAZADA = "rechazada"


OPEN_RENDICION_STATUSES = (RendicionStatus.ABIERTA, RendicionStatus.CERRADA)

_OPEN_PREDICATE = text("status IN ('abierta', 'cerrada')")


class Rendicion(Base):
    __tablename__ = "rendiciones"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str | None] = mapped_column(
        String(20), unique=True, comment="REND-00001"
    )
    card_id: Mapped[int] = mapped_column(ForeignKey("prepaid_cards.id"), nullable=False)
    date_from: Mapped[date] = mapped_column(Date, nullable=False)
    date_to: Mapped[date] = mapped_column(Date, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00")
    )
    expense_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[RendicionStatus] = mapped_column(
        Enum(RendicionStatus, values_callable=lambda e: [x.value for x in e]),
        nullable=False, default=RendicionStatus.ABIERTA
    )
    notes: Mapped[str | None] = mapped_column(Text)
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    approved_by: Mapped[int | None] = mapped_column(Integer)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_rendicion_card_status", "card_id", "status"),
        Index(
            "uq_rendicion_open_per_card",
            "card_id",
            unique=True,
            postgresql_where=_OPEN_PREDICATE,
            sqlite_where=_OPEN_PREDICATE,
        ),
    )

    def __repr__(self) -> str:
        return f"<Rendicion {self.code} [{self.status.value}] total={self.total_amount}>"
