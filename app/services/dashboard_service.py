"""
Servicio de dashboard financiero: saldos por cuenta y totales del mes.
Solo lectura; los saldos son los persistidos por el recálculo.
"""

from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.finance import FinancialAccount, Movement, MovementStatus, MovementType
from app.schemas.finance import (
    AccountBalance,
    BalancesResponse,
    FinanceDashboard,
    MonthTotals,
    MovementResponse,
)


# ── Saldos ───────────────────────────────────────────

async def _active_accounts(db: AsyncSession) -> list[FinancialAccount]:
    result = await db.execute(
        select(FinancialAccount)
        .where(FinancialAccount.is_active.is_(True))
        .order_by(FinancialAccount.name.asc())
    )
    return list(result.scalars().all())


async def get_balances(db: AsyncSession) -> BalancesResponse:
    """Saldo actual de cada cuenta activa y su suma."""
    accounts = await _active_accounts(db)
    return BalancesResponse(
        accounts=[AccountBalance.model_validate(a) for a in accounts],
        total=sum((Decimal(str(a.current_balance)) for a in accounts), Decimal("0.00")),
    )


# ── Dashboard ────────────────────────────────────────

async def _month_totals(
    db: AsyncSession, movement_type: MovementType, month_start: date
) -> MonthTotals:
    row = (
        await db.execute(
            select(
                func.coalesce(func.sum(Movement.amount), 0),
                func.count(Movement.id),
            ).where(
                Movement.movement_type == movement_type,
                Movement.status != MovementStatus.VOIDED,
                Movement.movement_date >= month_start,
            )
        )
    ).one()
    return MonthTotals(amount=Decimal(str(row[0] or 0)), count=row[1] or 0)


async def get_dashboard(db: AsyncSession, today: date | None = None) -> FinanceDashboard:
    """KPIs del mes en curso. Los movimientos anulados no cuentan."""
    today = today or date.today()
    month_start = today.replace(day=1)

    balances = await get_balances(db)
    income = await _month_totals(db, MovementType.INCOME, month_start)
    expense = await _month_totals(db, MovementType.EXPENSE, month_start)

    recent = await db.execute(
        select(Movement)
        .order_by(Movement.movement_date.desc(), Movement.id.desc())
        .limit(10)
    )

    return FinanceDashboard(
        total_balance=balances.total,
        income_month=income,
        expense_month=expense,
        balance_month=income.amount - expense.amount,
        accounts=balances.accounts,
        recent_movements=[MovementResponse.model_validate(m) for m in recent.scalars().all()],
    )
