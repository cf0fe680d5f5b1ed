"""
Libro de movimientos: ingresos y egresos contra una cuenta financiera.

Las funciones de bajo nivel (`insert_movement`, `create_movement`,
`void_movement`) no recalculan saldos ni hacen commit: se componen dentro de
una unidad de trabajo del llamador, que recalcula al final. Las funciones
`register_*` / `annul_*` son las operaciones completas que usa la API.
"""

import logging
import math
from datetime import date
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    InvalidAccountException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
    reject_nulls,
)
from app.database import unit_of_work
from app.models.card import CardExpense
from app.models.finance import (
    INCOME_CATEGORIES,
    Movement,
    MovementCategory,
    MovementStatus,
    MovementType,
    PaymentMethod,
)
from app.schemas.finance import (
    MovementCreate,
    MovementListResponse,
    MovementResponse,
    MovementUpdate,
)
from app.services import account_service, audit_service, balance_service

logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────


def _validate_amount(amount: Decimal | None) -> None:
    if amount is None or amount <= 0:
        raise ValidationException("El monto debe ser mayor a cero", field="amount")


def _validate_category(
    movement_type: MovementType, category: MovementCategory | None
) -> None:
    """Valida categoría vs tipo."""
    if category is None:
        return
    if movement_type == MovementType.INCOME and category not in INCOME_CATEGORIES:
        raise ValidationException("Categoría inválida para un ingreso", field="category")
    if movement_type == MovementType.EXPENSE and category in INCOME_CATEGORIES:
        raise ValidationException("Categoría inválida para un egreso", field="category")


async def _get_movement_for_update(db: AsyncSession, movement_id: int) -> Movement:
    result = await db.execute(
        select(Movement)
        .where(Movement.id == movement_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    movement = result.scalar_one_or_none()
    if not movement:
        raise NotFoundException("Movimiento", movement_id)
    return movement


# ── Escritura (sin commit) ────────────────────────────


async def insert_movement(
    db: AsyncSession,
    *,
    account_id: int,
    movement_type: MovementType,
    amount: Decimal,
    description: str,
    movement_date: date,
    created_by: int,
    category: MovementCategory | None = None,
    payment_method: PaymentMethod = PaymentMethod.TRANSFERENCIA,
    status: MovementStatus = MovementStatus.CONFIRMED,
    voucher: str | None = None,
    employee_id: int | None = None,
    transfer_ref: str | None = None,
) -> Movement:
    """Inserta un movimiento. La cuenta ya debe estar validada por el llamador."""
    _validate_amount(amount)
    _validate_category(movement_type, category)
    if status == MovementStatus.VOIDED:
        raise ValidationException("No se puede crear un movimiento anulado", field="status")

    movement = Movement(
        account_id=account_id,
        movement_type=movement_type,
        category=category,
        payment_method=payment_method,
        amount=amount,
        description=description[:500],
        voucher=voucher,
        movement_date=movement_date,
        status=status,
        employee_id=employee_id,
        transfer_ref=transfer_ref,
        created_by=created_by,
    )
    db.add(movement)
    await db.flush()
    return movement


async def create_movement(
    db: AsyncSession, user_id: int, data: MovementCreate
) -> Movement:
    """
    Valida monto, tipo y cuenta, e inserta el movimiento (CONFIRMADO salvo
    que se pida PENDIENTE). No recalcula el saldo.
    """
    _validate_amount(data.amount)
    if not await account_service.is_active(db, data.account_id):
        # Una cuenta inexistente se informa como 404
        await account_service.get_account(db, data.account_id)
        raise InvalidAccountException(account_id=data.account_id)

    return await insert_movement(
        db,
        account_id=data.account_id,
        movement_type=data.movement_type,
        amount=data.amount,
        description=data.description,
        movement_date=data.movement_date,
        created_by=user_id,
        category=data.category,
        payment_method=data.payment_method,
        status=MovementStatus.PENDING if data.pending else MovementStatus.CONFIRMED,
        voucher=data.voucher,
        employee_id=data.employee_id,
    )


async def void_movement(
    db: AsyncSession, movement_id: int, reason: str | None = None
) -> Movement:
    """CONFIRMADO → ANULADO. La fila se conserva. No recalcula el saldo."""
    movement = await _get_movement_for_update(db, movement_id)
    if movement.status != MovementStatus.CONFIRMED:
        raise InvalidTransitionException(
            "Movimiento", movement.status.value, MovementStatus.VOIDED.value
        )

    suffix = f" [ANULADO: {reason}]" if reason else " [ANULADO]"
    movement.status = MovementStatus.VOIDED
    movement.void_reason = reason
    movement.description = (movement.description + suffix)[:500]
    await db.flush()
    return movement


# ── Operaciones completas ─────────────────────────────


async def register_movement(
    db: AsyncSession, user_id: int, data: MovementCreate
) -> MovementResponse:
    """Registra un movimiento manual y recalcula el saldo de su cuenta."""
    async with unit_of_work(db):
        movement = await create_movement(db, user_id, data)
    await balance_service.settle_balances(db, movement.account_id)

    logger.info(
        f"Movimiento {movement.id} registrado: {movement.movement_type.value} "
        f"{movement.amount} cuenta={movement.account_id}"
    )
    audit_service.emit(
        actor_id=user_id, action="create", entity="movement", entity_id=movement.id,
        data={"amount": movement.amount, "type": movement.movement_type},
    )
    return MovementResponse.model_validate(movement)


async def annul_movement(
    db: AsyncSession, user_id: int, movement_id: int, reason: str | None = None
) -> MovementResponse:
    """Anula un movimiento confirmado y recalcula el saldo."""
    async with unit_of_work(db):
        movement = await void_movement(db, movement_id, reason)
    await balance_service.settle_balances(db, movement.account_id)

    logger.info(f"Movimiento {movement.id} anulado por user={user_id}")
    audit_service.emit(
        actor_id=user_id, action="void", entity="movement", entity_id=movement.id,
        data={"reason": reason},
    )
    return MovementResponse.model_validate(movement)


async def confirm_movement(
    db: AsyncSession, user_id: int, movement_id: int
) -> MovementResponse:
    """PENDIENTE → CONFIRMADO."""
    async with unit_of_work(db):
        movement = await _get_movement_for_update(db, movement_id)
        if movement.status != MovementStatus.PENDING:
            raise InvalidTransitionException(
                "Movimiento", movement.status.value, MovementStatus.CONFIRMED.value
            )
        movement.status = MovementStatus.CONFIRMED
    await balance_service.settle_balances(db, movement.account_id)

    audit_service.emit(
        actor_id=user_id, action="confirm", entity="movement", entity_id=movement.id,
    )
    return MovementResponse.model_validate(movement)


async def update_movement(
    db: AsyncSession, user_id: int, movement_id: int, data: MovementUpdate
) -> MovementResponse:
    """Solo se editan movimientos PENDIENTES."""
    changes = data.model_dump(exclude_unset=True)
    reject_nulls(changes, "payment_method", "amount", "description", "movement_date")
    async with unit_of_work(db):
        movement = await _get_movement_for_update(db, movement_id)
        if movement.status != MovementStatus.PENDING:
            raise InvalidTransitionException(
                "Movimiento", movement.status.value, "edit",
                "Solo se pueden editar movimientos en estado PENDIENTE",
            )
        if "amount" in changes:
            _validate_amount(changes["amount"])
        if "category" in changes:
            _validate_category(movement.movement_type, changes["category"])
        for field, value in changes.items():
            setattr(movement, field, value)
    await balance_service.settle_balances(db, movement.account_id)

    audit_service.emit(
        actor_id=user_id, action="update", entity="movement", entity_id=movement.id,
        data=changes,
    )
    return MovementResponse.model_validate(movement)


# ── Lectura ───────────────────────────────────────────


async def get_movement(db: AsyncSession, movement_id: int) -> MovementResponse:
    result = await db.execute(select(Movement).where(Movement.id == movement_id))
    movement = result.scalar_one_or_none()
    if not movement:
        raise NotFoundException("Movimiento", movement_id)
    return MovementResponse.model_validate(movement)


async def list_movements(
    db: AsyncSession,
    account_id: int | None = None,
    movement_type: MovementType | None = None,
    status: MovementStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    search: str | None = None,
    page: int = 1,
    size: int = 20,
) -> MovementListResponse:
    """Lista movimientos con filtros opcionales, más recientes primero."""
    query = select(Movement)
    if account_id:
        query = query.where(Movement.account_id == account_id)
    if movement_type:
        query = query.where(Movement.movement_type == movement_type)
    if status:
        query = query.where(Movement.status == status)
    if date_from:
        query = query.where(Movement.movement_date >= date_from)
    if date_to:
        query = query.where(Movement.movement_date <= date_to)
    if search:
        query = query.where(
            or_(
                Movement.description.ilike(f"%{search}%"),
                Movement.voucher.ilike(f"%{search}%"),
            )
        )

    count_q = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_q)).scalar() or 0
    pages = max(1, math.ceil(total / size))

    query = (
        query
        .order_by(Movement.movement_date.desc(), Movement.id.desc())
        .offset((page - 1) * size).limit(size)
    )
    result = await db.execute(query)
    return MovementListResponse(
        items=[MovementResponse.model_validate(m) for m in result.scalars().all()],
        total=total, page=page, size=size, pages=pages,
    )


async def list_transfer_legs(db: AsyncSession, transfer_ref: str) -> list[Movement]:
    result = await db.execute(
        select(Movement)
        .where(Movement.transfer_ref == transfer_ref)
        .order_by(Movement.id.asc())
    )
    return list(result.scalars().all())


async def list_unassigned_expenses(
    db: AsyncSession, card_id: int, date_from: date, date_to: date
) -> list[CardExpense]:
    """
    Gastos de la tarjeta sin rendición, con movimiento no anulado y fecha en
    [date_from, date_to] (inclusivo). Orden determinístico: fecha, id.
    """
    result = await db.execute(
        select(CardExpense)
        .join(Movement, Movement.id == CardExpense.movement_id)
        .where(
            CardExpense.card_id == card_id,
            CardExpense.rendicion_id.is_(None),
            Movement.status != MovementStatus.VOIDED,
            CardExpense.expense_date >= date_from,
            CardExpense.expense_date <= date_to,
        )
        .order_by(CardExpense.expense_date.asc(), CardExpense.id.asc())
    )
    return list(result.scalars().unique().all())
