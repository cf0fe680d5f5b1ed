"""
Modelos FinancialAccount + Movement — Cuentas financieras y libro de movimientos.

El saldo actual de la cuenta es un campo derivado: solo lo escribe el
recálculo de saldos a partir de los movimientos no anulados.
"""

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
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


# ── Enums ─────────────────────────────────────────────


class AccountType(str, enum.Enum):
    """Tipo de cuenta financiera."""
    CAJA_CHICA = "caja_chica"
    CUENTA_CORRIENTE = "cuenta_corriente"
    CAJA_AHORRO = "caja_ahorro"
    BILLETERA_VIRTUAL = "billetera_virtual"
    INVERSION = "inversion"
    TARJETA = "tarjeta"


class MovementType(str, enum.Enum):
    """Tipo de movimiento: ingreso o egreso."""
    INCOME = "income"
    EXPENSE = "expense"


class MovementStatus(str, enum.Enum):
    """Ciclo de vida del movimiento. ANULADO nunca se borra."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    VOIDED = "voided"


class PaymentMethod(str, enum.Enum):
    """Medio de pago del movimiento."""
    EFECTIVO = "efectivo"
    TRANSFERENCIA = "transferencia"
    CHEQUE = "cheque"
    ECHEQ = "echeq"
    TARJETA_DEBITO = "tarjeta_debito"
    TARJETA_CREDITO = "tarjeta_credito"
    MERCADOPAGO = "mercadopago"


class MovementCategory(str, enum.Enum):
    """Categoría del movimiento."""
    # Ingresos
    COBRO_FACTURA = "cobro_factura"
    ANTICIPO_CLIENTE = "anticipo_cliente"
    REINTEGRO = "reintegro"
    TRANSFERENCIA_ENTRADA = "transferencia_entrada"
    CARGA_TARJETA = "carga_tarjeta"
    OTRO_INGRESO = "otro_ingreso"
    # Egresos
    MATERIALES = "materiales"
    MANO_DE_OBRA = "mano_de_obra"
    SUBCONTRATISTA = "subcontratista"
    COMBUSTIBLE = "combustible"
    VIATICOS = "viaticos"
    SERVICIOS = "servicios"
    IMPUESTOS = "impuestos"
    HERRAMIENTAS = "herramientas"
    TRANSFERENCIA_SALIDA = "transferencia_salida"
    GASTO_TARJETA = "gasto_tarjeta"
    OTRO_EGRESO = "otro_egreso"


INCOME_CATEGORIES = frozenset({
    MovementCategory.COBRO_FACTURA,
    MovementCategory.ANTICIPO_CLIENTE,
    MovementCategory.REINTEGRO,
    MovementCategory.TRANSFERENCIA_ENTRADA,
    MovementCategory.CARGA_TARJETA,
    MovementCategory.OTRO_INGRESO,
})


# ── FinancialAccount ──────────────────────────────────


class FinancialAccount(Base):
    __tablename__ = "financial_accounts"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    account_type: Mapped[AccountType] = mapped_column(
        Enum(AccountType, values_callable=lambda e: [x.value for x in e]),
        nullable=False,
    )
    bank_name: Mapped[str | None] = mapped_column(String(100))
    account_number: Mapped[str | None] = mapped_column(String(50))
    cbu: Mapped[str | None] = mapped_column(String(30))
    alias: Mapped[str | None] = mapped_column(String(50))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="ARS")

    opening_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00"),
        comment="Saldo inicial"
    )
    current_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0.00"),
        comment="Saldo derivado: inicial + ingresos - egresos (no anulados)"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_account_active", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<FinancialAccount {self.id} {self.name!r} saldo={self.current_balance}>"


# ── Movement ──────────────────────────────────────────


class Movement(Base):
    __tablename__ = "movements"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    account_id: Mapped[int] = mapped_column(
        ForeignKey("financial_accounts.id"), nullable=False,
        comment="Cuenta dueña del movimiento"
    )
    movement_type: Mapped[MovementType] = mapped_column(
        Enum(MovementType, values_callable=lambda e: [x.value for x in e]),
        nullable=False, comment="income=ingreso, expense=egreso"
    )
    category: Mapped[MovementCategory | None] = mapped_column(
        Enum(MovementCategory, values_callable=lambda e: [x.value for x in e]),
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, values_callable=lambda e: [x.value for x in e]),
        nullable=False, default=PaymentMethod.TRANSFERENCIA
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, comment="Monto (siempre positivo)"
    )
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    voucher: Mapped[str | None] = mapped_column(
        String(100), comment="Comprobante: nro recibo, nro factura, etc."
    )
    movement_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[MovementStatus] = mapped_column(
        Enum(MovementStatus, values_callable=lambda e: [x.value for x in e]),
        nullable=False, default=MovementStatus.CONFIRMED
    )

    # ── Vínculos opcionales ──────────────────────────
    employee_id: Mapped[int | None] = mapped_column(Integer)
    transfer_ref: Mapped[str | None] = mapped_column(
        String(40), comment="Token compartido por las dos patas de una transferencia"
    )
    rendicion_id: Mapped[int | None] = mapped_column(
        ForeignKey("rendiciones.id"),
    )

    void_reason: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # ── Relaciones ───────────────────────────────────
    account: Mapped["FinancialAccount"] = relationship("FinancialAccount")

    # ── Índices ──────────────────────────────────────
    __table_args__ = (
        Index("idx_movement_account_status", "account_id", "status"),
        Index("idx_movement_date", "movement_date"),
        Index("idx_movement_transfer_ref", "transfer_ref"),
    )

    def __repr__(self) -> str:
        sign = "+" if self.movement_type == MovementType.INCOME else "-"
        return f"<Movement {self.id} {sign}{self.amount} [{self.status.value}]>"
