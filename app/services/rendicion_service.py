"""
Rendiciones de gastos con tarjeta.

Máquina de estados:

    (ninguna) → ABIERTA → CERRADA → APROBADA
                                  ↘ RECHAZADA (libera los gastos)

Una tarjeta tiene a lo sumo una rendición ABIERTA o CERRADA. Se verifica con
la fila de la tarjeta bloqueada y, ante una carrera perdida, el índice único
parcial `uq_rendicion_open_per_card` rechaza el segundo INSERT.
"""

import logging
import math
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import (
    ConflictingReconciliationException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from app.database import unit_of_work
from app.models.card import CardExpense
from app.models.rendicion import OPEN_RENDICION_STATUSES, Rendicion, RendicionStatus
from app.schemas.rendicion import (
    RendicionCreate,
    RendicionDetailResponse,
    RendicionListResponse,
    RendicionResponse,
)
from app.services import audit_service, card_service, movement_service

logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────


def _validate_window(date_from: date, date_to: date) -> None:
    if date_from > date_to:
        raise ValidationException(
            "La fecha desde no puede ser posterior a la fecha hasta", field="date_from"
        )


async def _get_rendicion(
    db: AsyncSession, rendicion_id: int, *, for_update: bool = False
) -> Rendicion:
    query = select(Rendicion).where(Rendicion.id == rendicion_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(query)
    rendicion = result.scalar_one_or_none()
    if not rendicion:
        raise NotFoundException("Rendición", rendicion_id)
    return rendicion


def _require_status(
    rendicion: Rendicion, expected: RendicionStatus, attempted: RendicionStatus
) -> None:
    if rendicion.status != expected:
        logger.warning(
            f"Transición inválida rendición={rendicion.id}: "
            f"{rendicion.status.value} → {attempted.value}"
        )
        raise InvalidTransitionException(
            "Rendición", rendicion.status.value, attempted.value
        )


async def _find_open_rendicion_id(db: AsyncSession, card_id: int) -> int | None:
    result = await db.execute(
        select(Rendicion.id).where(
            Rendicion.card_id == card_id,
            Rendicion.status.in_(OPEN_RENDICION_STATUSES),
        )
    )
    return result.scalars().first()


async def _assigned_expenses(db: AsyncSession, rendicion_id: int) -> list[CardExpense]:
    result = await db.execute(
        select(CardExpense)
        .where(CardExpense.rendicion_id == rendicion_id)
        .order_by(CardExpense.expense_date.asc(), CardExpense.id.asc())
    )
    return list(result.scalars().unique().all())


async def _release_expense(db: AsyncSession, expense: CardExpense) -> None:
    """Desasigna el gasto y su movimiento de la rendición."""
    expense.rendicion_id = None
    expense.movement.rendicion_id = None
    await db.flush()


# ── Creación ──────────────────────────────────────────


async def create_rendicion(
    db: AsyncSession, user_id: int, data: RendicionCreate
) -> RendicionDetailResponse:
    """
    Abre una rendición con todos los gastos sin rendir y no anulados de la
    tarjeta en [date_from, date_to]. Selección, totales y asignación de los
    gastos ocurren en una sola unidad de trabajo.
    """
    _validate_window(data.date_from, data.date_to)

    try:
        async with unit_of_work(db):
            card = await card_service.get_card_model(db, data.card_id, for_update=True)

            open_id = await _find_open_rendicion_id(db, card.id)
            if open_id is not None:
                logger.warning(
                    f"Rendición rechazada: tarjeta {card.id} ya tiene la rendición {open_id}"
                )
                raise ConflictingReconciliationException(card.id, open_id)

            expenses = await movement_service.list_unassigned_expenses(
                db, card.id, data.date_from, data.date_to
            )
            total = sum((e.amount for e in expenses), Decimal("0.00"))

            rendicion = Rendicion(
                card_id=card.id,
                date_from=data.date_from,
                date_to=data.date_to,
                total_amount=total,
                expense_count=len(expenses),
                status=RendicionStatus.ABIERTA,
                notes=data.notes,
                created_by=user_id,
            )
            db.add(rendicion)
            await db.flush()
            rendicion.code = f"{get_settings().RENDICION_CODE_PREFIX}-{rendicion.id:05d}"

            for expense in expenses:
                expense.rendicion_id = rendicion.id
                expense.movement.rendicion_id = rendicion.id
            await db.flush()
    except IntegrityError:
        logger.warning(f"Rendición concurrente detectada para tarjeta {data.card_id}")
        raise ConflictingReconciliationException(
            data.card_id, await _find_open_rendicion_id(db, data.card_id)
        )

    logger.info(
        f"Rendición {rendicion.code} creada: tarjeta={card.id} "
        f"gastos={rendicion.expense_count} total={rendicion.total_amount}"
    )
    audit_service.emit(
        actor_id=user_id, action="create", entity="rendicion", entity_id=rendicion.id,
        data={
            "card_id": card.id,
            "total_amount": rendicion.total_amount,
            "expense_ids": [e.id for e in expenses],
        },
    )
    return RendicionDetailResponse(
        **RendicionResponse.model_validate(rendicion).model_dump(),
        expenses=[card_service.expense_to_response(e) for e in expenses],
    )


# ── Transiciones ──────────────────────────────────────


async def close_rendicion(
    db: AsyncSession, user_id: int, rendicion_id: int
) -> RendicionResponse:
    """ABIERTA → CERRADA. Desde acá no se agregan gastos."""
    async with unit_of_work(db):
        rendicion = await _get_rendicion(db, rendicion_id, for_update=True)
        _require_status(rendicion, RendicionStatus.ABIERTA, RendicionStatus.CERRADA)
        rendicion.status = RendicionStatus.CERRADA

    logger.info(f"Rendición {rendicion.code} cerrada por user={user_id}")
    audit_service.emit(
        actor_id=user_id, action="close", entity="rendicion", entity_id=rendicion.id,
    )
    return RendicionResponse.model_validate(rendicion)


async def approve_rendicion(
    db: AsyncSession, user_id: int, rendicion_id: int
) -> RendicionResponse:
    """CERRADA → APROBADA. Los gastos quedan asignados para siempre."""
    async with unit_of_work(db):
        rendicion = await _get_rendicion(db, rendicion_id, for_update=True)
        _require_status(rendicion, RendicionStatus.CERRADA, RendicionStatus.APROBADA)
        rendicion.status = RendicionStatus.APROBADA
        rendicion.approved_by = user_id
        rendicion.approved_at = datetime.now(timezone.utc)

    logger.info(f"Rendición {rendicion.code} aprobada por user={user_id}")
    audit_service.emit(
        actor_id=user_id, action="approve", entity="rendicion", entity_id=rendicion.id,
    )
    return RendicionResponse.model_validate(rendicion)


async def reject_rendicion(
    db: AsyncSession, user_id: int, rendicion_id: int, reason: str | None
) -> RendicionResponse:
    """
    CERRADA → RECHAZADA. En la misma unidad de trabajo se desasignan todos
    sus gastos, que vuelven a estar disponibles para una rendición futura.
    """
    if not reason or not reason.strip():
        raise ValidationException(
            "El motivo de rechazo es obligatorio", field="rejection_reason"
        )

    async with unit_of_work(db):
        rendicion = await _get_rendicion(db, rendicion_id, for_update=True)
        _require_status(rendicion, RendicionStatus.CERRADA, RendicionStatus.RECHAZADA)

        released = await _assigned_expenses(db, rendicion.id)
        for expense in released:
            await _release_expense(db, expense)

        rendicion.status = RendicionStatus.RECHAZADA
        rendicion.rejection_reason = reason.strip()

    logger.info(
        f"Rendición {rendicion.code} rechazada por user={user_id}, "
        f"{len(released)} gastos liberados"
    )
    audit_service.emit(
        actor_id=user_id, action="reject", entity="rendicion", entity_id=rendicion.id,
        data={"reason": rendicion.rejection_reason, "released": [e.id for e in released]},
    )
    return RendicionResponse.model_validate(rendicion)


# ── Lectura ───────────────────────────────────────────


async def get_rendicion(db: AsyncSession, rendicion_id: int) -> RendicionDetailResponse:
    rendicion = await _get_rendicion(db, rendicion_id)
    expenses = await _assigned_expenses(db, rendicion.id)
    return RendicionDetailResponse(
        **RendicionResponse.model_validate(rendicion).model_dump(),
        expenses=[card_service.expense_to_response(e) for e in expenses],
    )


async def list_rendiciones(
    db: AsyncSession,
    status: RendicionStatus | None = None,
    card_id: int | None = None,
    page: int = 1,
    size: int = 20,
) -> RendicionListResponse:
    query = select(Rendicion)
    if status:
        query = query.where(Rendicion.status == status)
    if card_id:
        query = query.where(Rendicion.card_id == card_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0
    pages = max(1, math.ceil(total / size))

    result = await db.execute(
        query.order_by(Rendicion.created_at.desc(), Rendicion.id.desc())
        .offset((page - 1) * size).limit(size)
    )
    return RendicionListResponse(
        items=[RendicionResponse.model_validate(r) for r in result.scalars().all()],
        total=total, page=page, size=size, pages=pages,
    )
