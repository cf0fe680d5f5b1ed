"""
Endpoints de Rendiciones — apertura, cierre, aprobación y rechazo.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser, require_permission
from app.auth.rbac import TARJETAS_APROBAR, TARJETAS_ESCRIBIR, TARJETAS_LEER
from app.database import get_db
from app.models.rendicion import RendicionStatus
from app.schemas.rendicion import (
    RendicionCreate,
    RendicionDetailResponse,
    RendicionListResponse,
    RendicionReject,
    RendicionResponse,
)
from app.services import rendicion_service

router = APIRouter()


@router.get("", response_model=RendicionListResponse)
async def list_rendiciones(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    status: RendicionStatus | None = Query(None),
    card_id: int | None = Query(None),
    user: CurrentUser = Depends(require_permission(TARJETAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    return await rendicion_service.list_rendiciones(db, status, card_id, page, size)


@router.post("", response_model=RendicionDetailResponse, status_code=201)
async def create_rendicion(
    data: RendicionCreate,
    user: CurrentUser = Depends(require_permission(TARJETAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    """Abre una rendición con los gastos sin rendir del período."""
    return await rendicion_service.create_rendicion(db, user.id, data)


@router.get("/{rendicion_id}", response_model=RendicionDetailResponse)
async def get_rendicion(
    rendicion_id: int,
    user: CurrentUser = Depends(require_permission(TARJETAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    return await rendicion_service.get_rendicion(db, rendicion_id)


@router.post("/{rendicion_id}/cerrar", response_model=RendicionResponse)
async def close_rendicion(
    rendicion_id: int,
    user: CurrentUser = Depends(require_permission(TARJETAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    return await rendicion_service.close_rendicion(db, user.id, rendicion_id)


@router.post("/{rendicion_id}/aprobar", response_model=RendicionResponse)
async def approve_rendicion(
    rendicion_id: int,
    user: CurrentUser = Depends(require_permission(TARJETAS_APROBAR)),
    db: AsyncSession = Depends(get_db),
):
    return await rendicion_service.approve_rendicion(db, user.id, rendicion_id)


@router.post("/{rendicion_id}/rechazar", response_model=RendicionResponse)
async def reject_rendicion(
    rendicion_id: int,
    data: RendicionReject,
    user: CurrentUser = Depends(require_permission(TARJETAS_APROBAR)),
    db: AsyncSession = Depends(get_db),
):
    """Rechaza la rendición y libera sus gastos."""
    return await rendicion_service.reject_rendicion(
        db, user.id, rendicion_id, data.rejection_reason
    )
