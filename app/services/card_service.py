"""
Lógica de negocio de Tarjetas: ABM, cargas y gastos.

Cada carga genera un INGRESO y cada gasto un EGRESO sobre la cuenta
financiera de respaldo, en la misma unidad de trabajo que el registro de la
carga/gasto. Los gastos nacen sin rendición asignada.
"""

import logging
import math
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    InvalidCardTypeException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
    reject_nulls,
)
from app.database import unit_of_work
from app.models.card import (
    CardExpense,
    CardStatus,
    CardTopUp,
    CardType,
    ExpenseCategory,
    PrepaidCard,
)
from app.models.finance import (
    FinancialAccount,
    Movement,
    MovementCategory,
    MovementStatus,
    MovementType,
    PaymentMethod,
)
from app.models.rendicion import Rendicion, RendicionStatus
from app.schemas.cards import (
    CardCreate,
    CardListResponse,
    CardResponse,
    CardsSummary,
    CardUpdate,
    ExpenseCreate,
    ExpenseListResponse,
    ExpenseResponse,
    TopUpCreate,
    TopUpListResponse,
    TopUpResponse,
)
from app.services import account_service, audit_service, balance_service, movement_service

logger = logging.getLogger(__name__)

# Rendiciones en estas etapas ya no admiten cambios en sus gastos
_LOCKED_RENDICION_STATUSES = (RendicionStatus.CERRADA, RendicionStatus.APROBADA)


# ── Helpers ───────────────────────────────────────────


def _category_label(category: ExpenseCategory, other: str | None = None) -> str:
    if category == ExpenseCategory.OTRO and other:
        return other
    return category.value.replace("_", " ").capitalize()


def top_up_to_response(top_up: CardTopUp) -> TopUpResponse:
    return TopUpResponse(
        id=top_up.id,
        card_id=top_up.card_id,
        amount=top_up.amount,
        top_up_date=top_up.top_up_date,
        description=top_up.description,
        voucher=top_up.voucher,
        movement_id=top_up.movement_id,
        movement_status=top_up.movement.status,
        registered_by=top_up.registered_by,
        created_at=top_up.created_at,
    )


def expense_to_response(expense: CardExpense) -> ExpenseResponse:
    return ExpenseResponse(
        id=expense.id,
        card_id=expense.card_id,
        category=expense.category,
        category_other=expense.category_other,
        amount=expense.amount,
        expense_date=expense.expense_date,
        concept=expense.concept,
        movement_id=expense.movement_id,
        movement_status=expense.movement.status,
        rendicion_id=expense.rendicion_id,
        registered_by=expense.registered_by,
        created_at=expense.created_at,
    )


async def get_card_model(
    db: AsyncSession, card_id: int, *, for_update: bool = False
) -> PrepaidCard:
    """Tarjeta no eliminada o NotFoundException."""
    query = select(PrepaidCard).where(
        PrepaidCard.id == card_id,
        PrepaidCard.deleted_at.is_(None),
    )
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    card = result.scalar_one_or_none()
    if not card:
        raise NotFoundException("Tarjeta", card_id)
    return card


async def _check_card_number(
    db: AsyncSession, card_number: str, exclude_id: int | None = None
) -> None:
    query = select(PrepaidCard.id).where(
        PrepaidCard.card_number == card_number,
        PrepaidCard.deleted_at.is_(None),
    )
    if exclude_id:
        query = query.where(PrepaidCard.id != exclude_id)
    if (await db.execute(query)).first():
        raise ValidationException("Ya existe una tarjeta con ese número", field="card_number")


async def _get_expense(
    db: AsyncSession, expense_id: int, *, for_update: bool = False
) -> CardExpense:
    query = select(CardExpense).where(CardExpense.id == expense_id)
    if for_update:
        # El movimiento viene por LEFT OUTER JOIN; solo se bloquea el gasto
        query = query.with_for_update(of=CardExpense).execution_options(
            populate_existing=True
        )
    expense = (await db.execute(query)).scalar_one_or_none()
    if not expense:
        raise NotFoundException("Gasto", expense_id)
    return expense


async def _lock_rendicion(db: AsyncSession, rendicion_id: int) -> RendicionStatus:
    result = await db.execute(
        select(Rendicion.status).where(Rendicion.id == rendicion_id).with_for_update()
    )
    return result.scalar_one()


# ── Tarjetas ──────────────────────────────────────────


async def create_card(db: AsyncSession, user_id: int, data: CardCreate) -> CardResponse:
    await account_service.require_active_account(db, data.account_id, "cuenta financiera")
    if data.card_number:
        await _check_card_number(db, data.card_number)

    card = PrepaidCard(
        card_type=data.card_type,
        employee_id=data.employee_id,
        account_id=data.account_id,
        card_number=data.card_number,
        alias=data.alias,
    )
    db.add(card)
    await db.commit()
    await db.refresh(card)

    logger.info(f"Tarjeta creada: {card.label} (id={card.id}, tipo={card.card_type.value})")
    audit_service.emit(actor_id=user_id, action="create", entity="prepaid_card", entity_id=card.id)
    return CardResponse.model_validate(card)


async def get_card(db: AsyncSession, card_id: int) -> CardResponse:
    return CardResponse.model_validate(await get_card_model(db, card_id))


async def list_cards(
    db: AsyncSession,
    card_type: CardType | None = None,
    status: CardStatus | None = None,
    employee_id: int | None = None,
    search: str | None = None,
    page: int = 1,
    size: int = 20,
) -> CardListResponse:
    query = select(PrepaidCard).where(PrepaidCard.deleted_at.is_(None))
    if card_type:
        query = query.where(PrepaidCard.card_type == card_type)
    if status:
        query = query.where(PrepaidCard.status == status)
    if employee_id:
        query = query.where(PrepaidCard.employee_id == employee_id)
    if search:
        query = query.where(
            or_(
                PrepaidCard.alias.ilike(f"%{search}%"),
                PrepaidCard.card_number.ilike(f"%{search}%"),
            )
        )

    count_q = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_q)).scalar() or 0
    pages = max(1, math.ceil(total / size))

    query = query.order_by(PrepaidCard.created_at.desc(), PrepaidCard.id.desc())
    query = query.offset((page - 1) * size).limit(size)
    result = await db.execute(query)

    return CardListResponse(
        items=[CardResponse.model_validate(c) for c in result.scalars().all()],
        total=total, page=page, size=size, pages=pages,
    )


async def update_card(
    db: AsyncSession, user_id: int, card_id: int, data: CardUpdate
) -> CardResponse:
    card = await get_card_model(db, card_id)
    changes = data.model_dump(exclude_unset=True)
    reject_nulls(changes, "employee_id", "status")
    if changes.get("card_number") and changes["card_number"] != card.card_number:
        await _check_card_number(db, changes["card_number"], exclude_id=card.id)

    for field, value in changes.items():
        setattr(card, field, value)
    await db.commit()
    await db.refresh(card)

    audit_service.emit(
        actor_id=user_id, action="update", entity="prepaid_card", entity_id=card.id,
        data=changes,
    )
    return CardResponse.model_validate(card)


async def delete_card(db: AsyncSession, user_id: int, card_id: int) -> None:
    """Baja lógica de la tarjeta."""
    card = await get_card_model(db, card_id)
    card.deleted_at = datetime.now(timezone.utc)
    card.status = CardStatus.BAJA
    await db.commit()

    logger.info(f"Tarjeta dada de baja: {card.label} (id={card.id})")
    audit_service.emit(actor_id=user_id, action="delete", entity="prepaid_card", entity_id=card.id)


# ── Cargas ────────────────────────────────────────────


async def create_top_up(
    db: AsyncSession, user_id: int, card_id: int, data: TopUpCreate
) -> TopUpResponse:
    """Carga de saldo: INGRESO en la cuenta de respaldo + registro de carga."""
    card = await get_card_model(db, card_id)
    if card.card_type != CardType.PRECARGABLE:
        raise InvalidCardTypeException(card_id=card.id, card_type=card.card_type.value)

    async with unit_of_work(db):
        movement = await movement_service.insert_movement(
            db,
            account_id=card.account_id,
            movement_type=MovementType.INCOME,
            amount=data.amount,
            description=data.description or f"Carga tarjeta {card.label}",
            movement_date=data.top_up_date,
            created_by=user_id,
            category=MovementCategory.CARGA_TARJETA,
            payment_method=PaymentMethod.TRANSFERENCIA,
            voucher=data.voucher,
            employee_id=card.employee_id,
        )
        top_up = CardTopUp(
            card_id=card.id,
            amount=data.amount,
            top_up_date=data.top_up_date,
            description=data.description,
            voucher=data.voucher,
            movement=movement,
            registered_by=user_id,
        )
        db.add(top_up)
        await db.flush()

    await balance_service.settle_balances(db, card.account_id)

    logger.info(f"Carga {top_up.id} de {data.amount} en tarjeta {card.id}")
    audit_service.emit(
        actor_id=user_id, action="create", entity="card_top_up", entity_id=top_up.id,
        data={"card_id": card.id, "amount": data.amount, "movement_id": movement.id},
    )
    return top_up_to_response(top_up)


async def list_top_ups(
    db: AsyncSession, card_id: int, page: int = 1, size: int = 20
) -> TopUpListResponse:
    await get_card_model(db, card_id)
    base = select(CardTopUp).where(CardTopUp.card_id == card_id)
    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0

    result = await db.execute(
        base.order_by(CardTopUp.top_up_date.desc(), CardTopUp.id.desc())
        .offset((page - 1) * size).limit(size)
    )
    return TopUpListResponse(
        items=[top_up_to_response(t) for t in result.scalars().all()],
        total=total, page=page, size=size, pages=max(1, math.ceil(total / size)),
    )


# ── Gastos ────────────────────────────────────────────


async def create_expense(
    db: AsyncSession, user_id: int, card_id: int, data: ExpenseCreate
) -> ExpenseResponse:
    """Gasto con tarjeta: EGRESO en la cuenta de respaldo + gasto sin rendir."""
    card = await get_card_model(db, card_id)
    payment_method = (
        PaymentMethod.TARJETA_DEBITO
        if card.card_type == CardType.PRECARGABLE
        else PaymentMethod.TARJETA_CREDITO
    )
    category_other = data.category_other if data.category == ExpenseCategory.OTRO else None

    async with unit_of_work(db):
        movement = await movement_service.insert_movement(
            db,
            account_id=card.account_id,
            movement_type=MovementType.EXPENSE,
            amount=data.amount,
            description=f"{_category_label(data.category, category_other)}: {data.concept}",
            movement_date=data.expense_date,
            created_by=user_id,
            category=MovementCategory.GASTO_TARJETA,
            payment_method=payment_method,
            employee_id=card.employee_id,
        )
        expense = CardExpense(
            card_id=card.id,
            category=data.category,
            category_other=category_other,
            amount=data.amount,
            expense_date=data.expense_date,
            concept=data.concept,
            movement=movement,
            registered_by=user_id,
        )
        db.add(expense)
        await db.flush()

    await balance_service.settle_balances(db, card.account_id)

    logger.info(f"Gasto {expense.id} de {data.amount} en tarjeta {card.id}")
    audit_service.emit(
        actor_id=user_id, action="create", entity="card_expense", entity_id=expense.id,
        data={"card_id": card.id, "amount": data.amount, "movement_id": movement.id},
    )
    return expense_to_response(expense)


async def void_expense(
    db: AsyncSession, user_id: int, expense_id: int, reason: str | None = None
) -> ExpenseResponse:
    """
    Anula el movimiento del gasto (el gasto se conserva). No se permite si el
    gasto pertenece a una rendición cerrada o aprobada. Rendición y gasto
    quedan bloqueados hasta el commit, en el mismo orden en que los toman las
    transiciones de la rendición.
    """
    async with unit_of_work(db):
        expense = await _get_expense(db, expense_id)
        if expense.rendicion_id is not None:
            await _lock_rendicion(db, expense.rendicion_id)
        expense = await _get_expense(db, expense_id, for_update=True)

        if expense.rendicion_id is not None:
            rendicion_status = await _lock_rendicion(db, expense.rendicion_id)
            if rendicion_status in _LOCKED_RENDICION_STATUSES:
                raise InvalidTransitionException(
                    "Gasto", expense.movement.status.value, MovementStatus.VOIDED.value,
                    f"El gasto pertenece a una rendición {rendicion_status.value}",
                )

        account_id = (
            await db.execute(
                select(PrepaidCard.account_id).where(PrepaidCard.id == expense.card_id)
            )
        ).scalar_one()
        await movement_service.void_movement(db, expense.movement_id, reason)

    await balance_service.settle_balances(db, account_id)

    logger.info(f"Gasto {expense.id} anulado por user={user_id}")
    audit_service.emit(
        actor_id=user_id, action="void", entity="card_expense", entity_id=expense.id,
        data={"reason": reason},
    )
    return expense_to_response(expense)


async def list_expenses(
    db: AsyncSession,
    card_id: int,
    category: ExpenseCategory | None = None,
    unassigned_only: bool = False,
    page: int = 1,
    size: int = 20,
) -> ExpenseListResponse:
    await get_card_model(db, card_id)
    base = select(CardExpense).where(CardExpense.card_id == card_id)
    if category:
        base = base.where(CardExpense.category == category)
    if unassigned_only:
        base = base.where(CardExpense.rendicion_id.is_(None))

    total = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
    result = await db.execute(
        base.order_by(CardExpense.expense_date.desc(), CardExpense.id.desc())
        .offset((page - 1) * size).limit(size)
    )
    return ExpenseListResponse(
        items=[expense_to_response(e) for e in result.scalars().all()],
        total=total, page=page, size=size, pages=max(1, math.ceil(total / size)),
    )


# ── Resumen ───────────────────────────────────────────


async def get_cards_summary(db: AsyncSession, today: date | None = None) -> CardsSummary:
    today = today or date.today()
    month_start = today.replace(day=1)
    alive = PrepaidCard.deleted_at.is_(None)

    total = await db.scalar(select(func.count()).select_from(PrepaidCard).where(alive)) or 0
    precargables = await db.scalar(
        select(func.count()).select_from(PrepaidCard)
        .where(alive, PrepaidCard.card_type == CardType.PRECARGABLE)
    ) or 0
    corporativas = await db.scalar(
        select(func.count()).select_from(PrepaidCard)
        .where(alive, PrepaidCard.card_type == CardType.CORPORATIVA)
    ) or 0
    active = await db.scalar(
        select(func.count()).select_from(PrepaidCard)
        .where(alive, PrepaidCard.status == CardStatus.ACTIVA)
    ) or 0

    # Saldo total de las cuentas de respaldo de tarjetas precargables
    prepaid_balance = await db.scalar(
        select(func.coalesce(func.sum(FinancialAccount.current_balance), 0)).where(
            FinancialAccount.id.in_(
                select(PrepaidCard.account_id).where(
                    alive, PrepaidCard.card_type == CardType.PRECARGABLE
                )
            )
        )
    )

    month_row = (
        await db.execute(
            select(
                func.coalesce(func.sum(CardExpense.amount), 0),
                func.count(CardExpense.id),
            )
            .join(Movement, Movement.id == CardExpense.movement_id)
            .where(
                CardExpense.expense_date >= month_start,
                Movement.status != MovementStatus.VOIDED,
            )
        )
    ).one()

    pending_rendiciones = await db.scalar(
        select(func.count()).select_from(Rendicion)
        .where(Rendicion.status == RendicionStatus.CERRADA)
    ) or 0

    return CardsSummary(
        total=total,
        precargables=precargables,
        corporativas=corporativas,
        active=active,
        prepaid_balance=Decimal(str(prepaid_balance or 0)),
        month_expenses=Decimal(str(month_row[0] or 0)),
        month_expense_count=month_row[1] or 0,
        pending_rendiciones=pending_rendiciones,
    )
