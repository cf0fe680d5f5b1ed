"""
Endpoints de Movimientos — ingresos y egresos sobre cuentas financieras.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser, require_permission
from app.auth.rbac import FINANZAS_ESCRIBIR, FINANZAS_LEER
from app.database import get_db
from app.models.finance import MovementStatus, MovementType
from app.schemas.finance import (
    MovementCreate,
    MovementListResponse,
    MovementResponse,
    MovementUpdate,
    MovementVoid,
)
from app.services import movement_service

router = APIRouter()


@router.get("", response_model=MovementListResponse)
async def list_movements(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    account_id: int | None = Query(None),
    movement_type: MovementType | None = Query(None),
    status: MovementStatus | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
    search: str | None = Query(None),
    user: CurrentUser = Depends(require_permission(FINANZAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    """Lista movimientos con filtros, más recientes primero."""
    return await movement_service.list_movements(
        db, account_id, movement_type, status, date_from, date_to, search, page, size
    )


@router.post("", response_model=MovementResponse, status_code=201)
async def create_movement(
    data: MovementCreate,
    user: CurrentUser = Depends(require_permission(FINANZAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    """Registra un ingreso o egreso y recalcula el saldo de la cuenta."""
    return await movement_service.register_movement(db, user.id, data)


@router.get("/{movement_id}", response_model=MovementResponse)
async def get_movement(
    movement_id: int,
    user: CurrentUser = Depends(require_permission(FINANZAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    return await movement_service.get_movement(db, movement_id)


@router.patch("/{movement_id}", response_model=MovementResponse)
async def update_movement(
    movement_id: int,
    data: MovementUpdate,
    user: CurrentUser = Depends(require_permission(FINANZAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    """Edita un movimiento PENDIENTE."""
    return await movement_service.update_movement(db, user.id, movement_id, data)


@router.post("/{movement_id}/confirmar", response_model=MovementResponse)
async def confirm_movement(
    movement_id: int,
    user: CurrentUser = Depends(require_permission(FINANZAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    return await movement_service.confirm_movement(db, user.id, movement_id)


@router.post("/{movement_id}/anular", response_model=MovementResponse)
async def void_movement(
    movement_id: int,
    data: MovementVoid | None = None,
    user: CurrentUser = Depends(require_permission(FINANZAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    """Anula un movimiento confirmado. La fila se conserva."""
    reason = data.reason if data else None
    return await movement_service.annul_movement(db, user.id, movement_id, reason)
