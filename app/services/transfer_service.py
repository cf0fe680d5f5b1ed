"""
Transferencias entre cuentas financieras.

Una transferencia no es una entidad: son dos movimientos (EGRESO en origen,
INGRESO en destino) con el mismo monto y el mismo `transfer_ref`, creados
juntos o ninguno.
"""

import logging
import secrets
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.core.exceptions import InvalidTransferException, NotFoundException
from app.database import unit_of_work
from app.models.finance import (
    FinancialAccount,
    Movement,
    MovementCategory,
    MovementType,
    PaymentMethod,
)
from app.schemas.finance import MovementResponse, TransferCreate, TransferResponse
from app.services import account_service, audit_service, balance_service, movement_service

logger = logging.getLogger(__name__)


def new_transfer_ref() -> str:
    """TRF-<yyyymmddHHMMSS>-<6 hex>."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
    return f"{get_settings().TRANSFER_REF_PREFIX}-{stamp}-{secrets.token_hex(3)}"


async def _insert_leg(
    db: AsyncSession,
    *,
    account: FinancialAccount,
    counterpart: FinancialAccount,
    movement_type: MovementType,
    data: TransferCreate,
    transfer_ref: str,
    user_id: int,
) -> Movement:
    if movement_type == MovementType.EXPENSE:
        category = MovementCategory.TRANSFERENCIA_SALIDA
        description = f"{data.description} → {counterpart.name}"
    else:
        category = MovementCategory.TRANSFERENCIA_ENTRADA
        description = f"{data.description} ← {counterpart.name}"

    return await movement_service.insert_movement(
        db,
        account_id=account.id,
        movement_type=movement_type,
        amount=data.amount,
        description=description,
        movement_date=data.movement_date,
        created_by=user_id,
        category=category,
        payment_method=PaymentMethod.TRANSFERENCIA,
        voucher=data.voucher,
        transfer_ref=transfer_ref,
    )


async def create_transfer(
    db: AsyncSession, user_id: int, data: TransferCreate
) -> TransferResponse:
    """
    Crea las dos patas de la transferencia en una sola unidad de trabajo y
    luego recalcula el saldo de ambas cuentas.
    """
    if data.source_account_id == data.destination_account_id:
        raise InvalidTransferException(account_id=data.source_account_id)

    source = await account_service.require_active_account(
        db, data.source_account_id, "cuenta origen"
    )
    destination = await account_service.require_active_account(
        db, data.destination_account_id, "cuenta destino"
    )

    transfer_ref = new_transfer_ref()
    async with unit_of_work(db):
        outgoing = await _insert_leg(
            db, account=source, counterpart=destination,
            movement_type=MovementType.EXPENSE, data=data,
            transfer_ref=transfer_ref, user_id=user_id,
        )
        incoming = await _insert_leg(
            db, account=destination, counterpart=source,
            movement_type=MovementType.INCOME, data=data,
            transfer_ref=transfer_ref, user_id=user_id,
        )

    await balance_service.settle_balances(db, source.id, destination.id)

    logger.info(
        f"Transferencia {transfer_ref}: {data.amount} de cuenta={source.id} "
        f"a cuenta={destination.id}"
    )
    audit_service.emit(
        actor_id=user_id, action="transfer", entity="movement", entity_id=transfer_ref,
        data={
            "amount": data.amount,
            "source_account_id": source.id,
            "destination_account_id": destination.id,
            "movement_ids": [outgoing.id, incoming.id],
        },
    )
    return TransferResponse(
        transfer_ref=transfer_ref,
        outgoing=MovementResponse.model_validate(outgoing),
        incoming=MovementResponse.model_validate(incoming),
    )


async def get_transfer(db: AsyncSession, transfer_ref: str) -> TransferResponse:
    legs = await movement_service.list_transfer_legs(db, transfer_ref)
    outgoing = next((m for m in legs if m.movement_type == MovementType.EXPENSE), None)
    incoming = next((m for m in legs if m.movement_type == MovementType.INCOME), None)
    if outgoing is None or incoming is None:
        raise NotFoundException("Transferencia", transfer_ref)
    return TransferResponse(
        transfer_ref=transfer_ref,
        outgoing=MovementResponse.model_validate(outgoing),
        incoming=MovementResponse.model_validate(incoming),
    )
