"""
Endpoints de Dashboard financiero.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser, require_permission
from app.auth.rbac import FINANZAS_LEER
from app.database import get_db
from app.schemas.finance import BalancesResponse, FinanceDashboard
from app.services import dashboard_service

router = APIRouter()


@router.get("/dashboard", response_model=FinanceDashboard)
async def get_dashboard(
    user: CurrentUser = Depends(require_permission(FINANZAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    """KPIs financieros del mes en curso."""
    return await dashboard_service.get_dashboard(db)


@router.get("/saldos", response_model=BalancesResponse)
async def get_balances(
    user: CurrentUser = Depends(require_permission(FINANZAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    return await dashboard_service.get_balances(db)
