"""
Recálculo de saldos de cuentas financieras.

El saldo se deriva siempre desde cero:

    saldo = saldo_inicial + Σ ingresos (no anulados) - Σ egresos (no anulados)

No se mantiene de forma incremental. Es idempotente y seguro de invocar de más.
"""

import logging
from collections.abc import Iterable
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import unit_of_work
from app.models.finance import FinancialAccount, Movement, MovementStatus, MovementType
from app.services import account_service

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


def _to_decimal(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(_CENTS)


async def _sum_movements(
    db: AsyncSession, account_id: int, movement_type: MovementType
) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(Movement.amount), 0)).where(
            Movement.account_id == account_id,
            Movement.movement_type == movement_type,
            Movement.status != MovementStatus.VOIDED,
        )
    )
    return _to_decimal(result.scalar())


async def compute_balance(db: AsyncSession, account_id: int) -> Decimal:
    """Calcula el saldo derivado sin persistirlo."""
    account = await account_service.get_account(db, account_id)
    total_income = await _sum_movements(db, account_id, MovementType.INCOME)
    total_expense = await _sum_movements(db, account_id, MovementType.EXPENSE)
    return _to_decimal(account.opening_balance) + total_income - total_expense


async def recompute_balance(db: AsyncSession, account_id: int) -> Decimal:
    """
    Recalcula y persiste el saldo actual de una cuenta.
    Bloquea la fila de la cuenta para serializar recálculos concurrentes.
    El commit queda a cargo del llamador.
    """
    account = await account_service.get_account(db, account_id, for_update=True)
    total_income = await _sum_movements(db, account_id, MovementType.INCOME)
    total_expense = await _sum_movements(db, account_id, MovementType.EXPENSE)
    balance = _to_decimal(account.opening_balance) + total_income - total_expense

    await account_service.set_current_balance(db, account_id, balance)
    logger.debug(f"Saldo recalculado cuenta={account_id}: {balance}")
    return balance


async def recompute_balances(
    db: AsyncSession, account_ids: Iterable[int]
) -> dict[int, Decimal]:
    """Recalcula varias cuentas en orden estable de id."""
    return {
        account_id: await recompute_balance(db, account_id)
        for account_id in sorted(set(account_ids))
    }


async def settle_balances(db: AsyncSession, *account_ids: int) -> dict[int, Decimal]:
    """Recalcula en su propia unidad de trabajo, tras confirmar la escritura que lo dispara."""
    async with unit_of_work(db):
        return await recompute_balances(db, account_ids)


async def reconcile_all_balances(db: AsyncSession) -> list[tuple[int, Decimal, Decimal]]:
    """
    Recalcula todas las cuentas y devuelve las que tenían el saldo desfasado
    como (id, saldo_persistido, saldo_recalculado).
    """
    result = await db.execute(
        select(FinancialAccount.id, FinancialAccount.current_balance)
        .order_by(FinancialAccount.id.asc())
    )
    persisted = {row.id: _to_decimal(row.current_balance) for row in result.all()}

    recomputed = await settle_balances(db, *persisted)

    drifted = [
        (account_id, persisted[account_id], balance)
        for account_id, balance in recomputed.items()
        if persisted[account_id] != balance
    ]
    for account_id, before, after in drifted:
        logger.warning(f"Saldo desfasado cuenta={account_id}: {before} → {after}")
    return drifted
