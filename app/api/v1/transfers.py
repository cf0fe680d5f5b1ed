"""
Endpoints de Transferencias entre cuentas.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import CurrentUser, require_permission
from app.auth.rbac import FINANZAS_ESCRIBIR, FINANZAS_LEER
from app.database import get_db
from app.schemas.finance import TransferCreate, TransferResponse
from app.services import transfer_service

router = APIRouter()


@router.post("", response_model=TransferResponse, status_code=201)
async def create_transfer(
    data: TransferCreate,
    user: CurrentUser = Depends(require_permission(FINANZAS_ESCRIBIR)),
    db: AsyncSession = Depends(get_db),
):
    """Crea el egreso en origen y el ingreso en destino, o ninguno."""
    return await transfer_service.create_transfer(db, user.id, data)


@router.get("/{transfer_ref}", response_model=TransferResponse)
async def get_transfer(
    transfer_ref: str,
    user: CurrentUser = Depends(require_permission(FINANZAS_LEER)),
    db: AsyncSession = Depends(get_db),
):
    return await transfer_service.get_transfer(db, transfer_ref)
