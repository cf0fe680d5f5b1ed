"""
Endpoints de Cuentas Financieras.
Las cuentas no se eliminan: se desactivan.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser, require_permission
from app.auth.rbac import FINANZAS_ESCRIBIR, FINANZAS_LEER
from app.database import get_db
from app.schemas.finance import (
    AccountCreate,
    AccountDetailResponse,
    AccountResponse,
    AccountUpdate,
)
from app.services import account_service

router = APIRouter()


@router.get("", response_model=list[AccountResponse])
async def list_accounts(
    include_inactive: bool = Query(False),
    user: CurrentUser = Depends(require_permission(FINANZAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    """Lista cuentas financieras (solo activas por defecto)."""
    return await account_service.list_accounts(db, include_inactive)


@router.post("", response_model=AccountResponse, status_code=201)
async def create_account(
    data: AccountCreate,
    user: CurrentUser = Depends(require_permission(FINANZAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.create_account(db, user.id, data)


@router.get("/{account_id}", response_model=AccountDetailResponse)
async def get_account(
    account_id: int,
    user: CurrentUser = Depends(require_permission(FINANZAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    """Cuenta con sus últimos movimientos."""
    return await account_service.get_account_detail(db, account_id)


@router.patch("/{account_id}", response_model=AccountResponse)
async def update_account(
    account_id: int,
    data: AccountUpdate,
    user: CurrentUser = Depends(require_permission(FINANZAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.update_account(db, user.id, account_id, data)


@router.delete("/{account_id}", response_model=AccountResponse)
async def deactivate_account(
    account_id: int,
    user: CurrentUser = Depends(require_permission(FINANZAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    """Desactiva la cuenta."""
    return await account_service.deactivate_account(db, user.id, account_id)
