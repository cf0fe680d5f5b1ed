"""
Lógica de negocio de Cuentas Financieras.

El saldo actual solo lo escribe `set_current_balance`, invocado desde el
recálculo de saldos. El resto del sistema lo trata como solo lectura.
"""

import logging
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import InvalidAccountException, NotFoundException, reject_nulls
from app.models.finance import FinancialAccount, Movement
from app.schemas.finance import (
    AccountCreate,
    AccountDetailResponse,
    AccountResponse,
    AccountUpdate,
    MovementResponse,
)
from app.services import audit_service, balance_service

logger = logging.getLogger(__name__)


# ── Lookups ───────────────────────────────────────────


async def get_account(
    db: AsyncSession, account_id: int, *, for_update: bool = False
) -> FinancialAccount:
    """Retorna la cuenta o lanza NotFoundException."""
    query = select(FinancialAccount).where(FinancialAccount.id == account_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    account = result.scalar_one_or_none()
    if not account:
        raise NotFoundException("Cuenta financiera", account_id)
    return account


async def is_active(db: AsyncSession, account_id: int) -> bool:
    result = await db.execute(
        select(FinancialAccount.is_active).where(FinancialAccount.id == account_id)
    )
    return bool(result.scalar_one_or_none())


async def require_active_account(
    db: AsyncSession, account_id: int, role: str = "cuenta"
) -> FinancialAccount:
    """
    Precondición para operar sobre una cuenta: debe existir y estar activa.
    A diferencia de `get_account`, un faltante se informa como cuenta inválida.
    """
    result = await db.execute(
        select(FinancialAccount).where(FinancialAccount.id == account_id)
    )
    account = result.scalar_one_or_none()
    if account is None or not account.is_active:
        raise InvalidAccountException(
            f"La {role} no existe o no está activa",
            account_id=account_id,
            role=role,
        )
    return account


async def set_current_balance(
    db: AsyncSession, account_id: int, value: Decimal
) -> None:
    """Escribe el saldo derivado. Uso exclusivo del recálculo de saldos."""
    await db.execute(
        update(FinancialAccount)
        .where(FinancialAccount.id == account_id)
        .values(current_balance=value)
        .execution_options(synchronize_session="fetch")
    )


# ── CRUD ──────────────────────────────────────────────


async def create_account(
    db: AsyncSession, user_id: int, data: AccountCreate
) -> AccountResponse:
    """Crea una cuenta; el saldo actual arranca igual al saldo inicial."""
    account = FinancialAccount(
        name=data.name,
        account_type=data.account_type,
        bank_name=data.bank_name,
        account_number=data.account_number,
        cbu=data.cbu,
        alias=data.alias,
        currency=data.currency or get_settings().DEFAULT_CURRENCY,
        opening_balance=data.opening_balance,
        current_balance=data.opening_balance,
    )
    db.add(account)
    await db.commit()
    await db.refresh(account)

    logger.info(f"Cuenta creada: {account.name} (id={account.id})")
    audit_service.emit(
        actor_id=user_id, action="create", entity="financial_account",
        entity_id=account.id, data={"opening_balance": account.opening_balance},
    )
    return AccountResponse.model_validate(account)


async def list_accounts(
    db: AsyncSession, include_inactive: bool = False
) -> list[AccountResponse]:
    query = select(FinancialAccount)
    if not include_inactive:
        query = query.where(FinancialAccount.is_active.is_(True))
    result = await db.execute(query.order_by(FinancialAccount.name.asc()))
    return [AccountResponse.model_validate(a) for a in result.scalars().all()]


async def get_account_detail(db: AsyncSession, account_id: int) -> AccountDetailResponse:
    """Cuenta con sus últimos 10 movimientos."""
    account = await get_account(db, account_id)
    result = await db.execute(
        select(Movement)
        .where(Movement.account_id == account_id)
        .order_by(Movement.movement_date.desc(), Movement.id.desc())
        .limit(10)
    )
    movements = result.scalars().all()
    return AccountDetailResponse(
        **AccountResponse.model_validate(account).model_dump(),
        recent_movements=[MovementResponse.model_validate(m) for m in movements],
    )


async def update_account(
    db: AsyncSession, user_id: int, account_id: int, data: AccountUpdate
) -> AccountResponse:
    """Actualiza datos de la cuenta. Cambiar el saldo inicial recalcula el saldo."""
    account = await get_account(db, account_id)
    changes = data.model_dump(exclude_unset=True)
    reject_nulls(changes, "name", "opening_balance")
    for field, value in changes.items():
        setattr(account, field, value)
    await db.commit()

    if "opening_balance" in changes:
        await balance_service.settle_balances(db, account_id)

    await db.refresh(account)
    audit_service.emit(
        actor_id=user_id, action="update", entity="financial_account",
        entity_id=account.id, data=changes,
    )
    return AccountResponse.model_validate(account)


async def deactivate_account(
    db: AsyncSession, user_id: int, account_id: int
) -> AccountResponse:
    """Las cuentas nunca se eliminan: se desactivan."""
    account = await get_account(db, account_id)
    account.is_active = False
    await db.commit()
    await db.refresh(account)

    logger.info(f"Cuenta desactivada: {account.name} (id={account.id})")
    audit_service.emit(
        actor_id=user_id, action="deactivate", entity="financial_account",
        entity_id=account.id,
    )
    return AccountResponse.model_validate(account)
