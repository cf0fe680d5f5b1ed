"""
Endpoints de Tarjetas — ABM, cargas de saldo y gastos.
"""

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser, require_permission
from app.auth.rbac import TARJETAS_ESCRIBIR, TARJETAS_LEER
from app.database import get_db
from app.models.card import CardStatus, CardType, ExpenseCategory
from app.schemas.cards import (
    CardCreate,
    CardListResponse,
    CardResponse,
    CardsSummary,
    CardUpdate,
    ExpenseCreate,
    ExpenseListResponse,
    ExpenseResponse,
    ExpenseVoid,
    TopUpCreate,
    TopUpListResponse,
    TopUpResponse,
)
from app.services import card_service

router = APIRouter()


# ── Tarjetas ──────────────────────────────────────────


@router.get("", response_model=CardListResponse)
async def list_cards(
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    card_type: CardType | None = Query(None),
    status: CardStatus | None = Query(None),
    employee_id: int | None = Query(None),
    search: str | None = Query(None),
    user: CurrentUser = Depends(require_permission(TARJETAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    return await card_service.list_cards(
        db, card_type, status, employee_id, search, page, size
    )


@router.post("", response_model=CardResponse, status_code=201)
async def create_card(
    data: CardCreate,
    user: CurrentUser = Depends(require_permission(TARJETAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    return await card_service.create_card(db, user.id, data)


@router.get("/resumen", response_model=CardsSummary)
async def get_summary(
    user: CurrentUser = Depends(require_permission(TARJETAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    """Totales de tarjetas, gasto del mes y rendiciones pendientes."""
    return await card_service.get_cards_summary(db)


@router.post("/gastos/{expense_id}/anular", response_model=ExpenseResponse)
async def void_expense(
    expense_id: int,
    data: ExpenseVoid | None = None,
    user: CurrentUser = Depends(require_permission(TARJETAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    """Anula el movimiento de un gasto que no esté en una rendición cerrada o aprobada."""
    reason = data.reason if data else None
    return await card_service.void_expense(db, user.id, expense_id, reason)


@router.get("/{card_id}", response_model=CardResponse)
async def get_card(
    card_id: int,
    user: CurrentUser = Depends(require_permission(TARJETAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    return await card_service.get_card(db, card_id)


@router.patch("/{card_id}", response_model=CardResponse)
async def update_card(
    card_id: int,
    data: CardUpdate,
    user: CurrentUser = Depends(require_permission(TARJETAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    return await card_service.update_card(db, user.id, card_id, data)


@router.delete("/{card_id}", status_code=204)
async def delete_card(
    card_id: int,
    user: CurrentUser = Depends(require_permission(TARJETAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    """Baja lógica de la tarjeta."""
    await card_service.delete_card(db, user.id, card_id)
    return Response(status_code=204)


# ── Cargas ────────────────────────────────────────────


@router.get("/{card_id}/cargas", response_model=TopUpListResponse)
async def list_top_ups(
    card_id: int,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    user: CurrentUser = Depends(require_permission(TARJETAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    return await card_service.list_top_ups(db, card_id, page, size)


@router.post("/{card_id}/cargas", response_model=TopUpResponse, status_code=201)
async def create_top_up(
    card_id: int,
    data: TopUpCreate,
    user: CurrentUser = Depends(require_permission(TARJETAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    """Carga saldo en una tarjeta precargable."""
    return await card_service.create_top_up(db, user.id, card_id, data)


# ── Gastos ────────────────────────────────────────────


@router.get("/{card_id}/gastos", response_model=ExpenseListResponse)
async def list_expenses(
    card_id: int,
    page: int = Query(1, ge=1),
    size: int = Query(20, ge=1, le=100),
    category: ExpenseCategory | None = Query(None),
    unassigned_only: bool = Query(False),
    user: CurrentUser = Depends(require_permission(TARJETAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    return await card_service.list_expenses(
        db, card_id, category, unassigned_only, page, size
    )


@router.post("/{card_id}/gastos", response_model=ExpenseResponse, status_code=201)
async def create_expense(
    card_id: int,
    data: ExpenseCreate,
    user: CurrentUser = Depends(require_permission(TARJETAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    """Registra un gasto; queda sin rendir."""
    return await card_service.create_expense(db, user.id, card_id, data)
