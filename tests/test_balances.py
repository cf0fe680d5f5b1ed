"""
Tests del recálculo de saldos.
"""

from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import NotFoundException, ValidationException
from app.models.finance import MovementCategory, MovementType
from app.schemas.finance import AccountUpdate, MovementCreate
from app.services import account_service, balance_service, movement_service

from tests.conftest import TEST_USER_ID


async def _persisted_balance(db, account_id: int) -> Decimal:
    account = await account_service.get_account(db, account_id)
    return account.current_balance


def _movement(account_id, movement_type, amount, **kwargs) -> MovementCreate:
    return MovementCreate(
        account_id=account_id,
        movement_type=movement_type,
        amount=Decimal(amount),
        description=kwargs.pop("description", "Movimiento de prueba"),
        movement_date=kwargs.pop("movement_date", date(2024, 3, 1)),
        **kwargs,
    )


async def test_new_account_starts_at_opening_balance(db_session, make_account):
    account = await make_account(opening_balance="1500.50")

    assert account.current_balance == Decimal("1500.50")
    assert await balance_service.compute_balance(db_session, account.id) == Decimal("1500.50")


async def test_balance_matches_ledger_after_mixed_movements(db_session, make_account):
    account = await make_account(opening_balance="1000")

    await movement_service.register_movement(
        db_session, TEST_USER_ID,
        _movement(account.id, MovementType.INCOME, "250", category=MovementCategory.COBRO_FACTURA),
    )
    expense = await movement_service.register_movement(
        db_session, TEST_USER_ID,
        _movement(account.id, MovementType.EXPENSE, "100", category=MovementCategory.MATERIALES),
    )
    # Los pendientes cuentan: solo los anulados se excluyen
    await movement_service.register_movement(
        db_session, TEST_USER_ID,
        _movement(account.id, MovementType.EXPENSE, "30", pending=True),
    )
    await movement_service.annul_movement(db_session, TEST_USER_ID, expense.id, "error de carga")

    assert await _persisted_balance(db_session, account.id) == Decimal("1220.00")
    assert await balance_service.compute_balance(db_session, account.id) == Decimal("1220.00")


async def test_recompute_is_idempotent(db_session, make_account):
    account = await make_account(opening_balance="300")
    await movement_service.register_movement(
        db_session, TEST_USER_ID, _movement(account.id, MovementType.EXPENSE, "120.25"),
    )

    first = await balance_service.settle_balances(db_session, account.id)
    second = await balance_service.settle_balances(db_session, account.id)

    assert first == second == {account.id: Decimal("179.75")}
    assert await _persisted_balance(db_session, account.id) == Decimal("179.75")


async def test_recompute_fixes_drifted_balance(db_session, make_account):
    account = await make_account(opening_balance="100")
    await account_service.set_current_balance(db_session, account.id, Decimal("999"))
    await db_session.commit()

    await balance_service.settle_balances(db_session, account.id)

    assert await _persisted_balance(db_session, account.id) == Decimal("100.00")


async def test_recompute_missing_account_raises(db_session):
    with pytest.raises(NotFoundException):
        await balance_service.settle_balances(db_session, 404)


async def test_changing_opening_balance_recomputes(db_session, make_account):
    account = await make_account(opening_balance="100")
    await movement_service.register_movement(
        db_session, TEST_USER_ID, _movement(account.id, MovementType.INCOME, "50"),
    )

    updated = await account_service.update_account(
        db_session, TEST_USER_ID, account.id, AccountUpdate(opening_balance=Decimal("400")),
    )

    assert updated.current_balance == Decimal("450.00")


async def test_update_account_rejects_null_on_required_fields(db_session, make_account):
    account = await make_account(name="Banco Provincia", opening_balance="250")

    for field in ("name", "opening_balance"):
        with pytest.raises(ValidationException) as exc_info:
            await account_service.update_account(
                db_session, TEST_USER_ID, account.id, AccountUpdate(**{field: None}),
            )
        assert exc_info.value.field == field

    stored = await account_service.get_account(db_session, account.id)
    assert stored.name == "Banco Provincia"
    assert stored.opening_balance == Decimal("250.00")
    assert await _persisted_balance(db_session, account.id) == Decimal("250.00")


async def test_reconcile_all_reports_and_fixes_drift(db_session, make_account):
    healthy = await make_account(name="Sana", opening_balance="10")
    drifted = await make_account(name="Desfasada", opening_balance="20")
    await account_service.set_current_balance(db_session, drifted.id, Decimal("5"))
    await db_session.commit()

    report = await balance_service.reconcile_all_balances(db_session)

    assert report == [(drifted.id, Decimal("5.00"), Decimal("20.00"))]
    assert await _persisted_balance(db_session, drifted.id) == Decimal("20.00")
    assert await _persisted_balance(db_session, healthy.id) == Decimal("10.00")
