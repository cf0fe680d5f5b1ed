"""
Tests del flujo de rendiciones.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    ConflictingReconciliationException,
    InvalidTransitionException,
    NotFoundException,
    ValidationException,
)
from app.models.card import CardType
from app.models.rendicion import Rendicion, RendicionStatus
from app.schemas.cards import ExpenseCreate
from app.schemas.rendicion import RendicionCreate
from app.services import card_service, movement_service, rendicion_service

from tests.conftest import TEST_USER_ID

JANUARY = (date(2024, 1, 1), date(2024, 1, 31))


def _window(card_id: int, date_from: date = JANUARY[0], date_to: date = JANUARY[1]):
    return RendicionCreate(card_id=card_id, date_from=date_from, date_to=date_to)


async def _add_expense(db, card_id: int, day: date, amount: str = "100"):
    return await card_service.create_expense(
        db, TEST_USER_ID, card_id,
        ExpenseCreate(amount=Decimal(amount), expense_date=day, concept="Peaje autopista"),
    )


async def _closed_rendicion(db, card_id: int):
    rendicion = await rendicion_service.create_rendicion(db, TEST_USER_ID, _window(card_id))
    await rendicion_service.close_rendicion(db, TEST_USER_ID, rendicion.id)
    return rendicion


# ── Creación ─────────────────────────────────────────


async def test_create_selects_unassigned_expenses_in_window(db_session, make_card):
    card = await make_card()
    other_card = await make_card(alias="Otra")
    inside = [
        await _add_expense(db_session, card.id, date(2024, 1, 1), "40"),
        await _add_expense(db_session, card.id, date(2024, 1, 31), "60.50"),
    ]
    await _add_expense(db_session, card.id, date(2024, 2, 1))
    await _add_expense(db_session, other_card.id, date(2024, 1, 15))
    voided = await _add_expense(db_session, card.id, date(2024, 1, 20))
    await card_service.void_expense(db_session, TEST_USER_ID, voided.id)

    rendicion = await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))

    assert rendicion.status == RendicionStatus.ABIERTA
    assert rendicion.code == f"REND-{rendicion.id:05d}"
    assert rendicion.total_amount == Decimal("100.50")
    assert rendicion.expense_count == 2
    assert rendicion.created_by == TEST_USER_ID
    assert [e.id for e in rendicion.expenses] == [e.id for e in inside]
    assert all(e.rendicion_id == rendicion.id for e in rendicion.expenses)

    movement = await movement_service.get_movement(db_session, inside[0].movement_id)
    assert movement.rendicion_id == rendicion.id


async def test_create_with_no_expenses_opens_empty_rendicion(db_session, make_card):
    card = await make_card()

    rendicion = await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))

    assert rendicion.expense_count == 0
    assert rendicion.total_amount == Decimal("0")


async def test_create_rejects_inverted_window(db_session, make_card):
    card = await make_card()

    with pytest.raises(ValidationException) as exc_info:
        await rendicion_service.create_rendicion(
            db_session, TEST_USER_ID, _window(card.id, date(2024, 2, 1), date(2024, 1, 1))
        )
    assert exc_info.value.field == "date_from"


async def test_create_for_missing_card_fails(db_session):
    with pytest.raises(NotFoundException):
        await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(321))


# ── Exclusividad ─────────────────────────────────────


async def test_second_rendicion_while_open_conflicts(db_session, make_card):
    card = await make_card()
    first = await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))

    with pytest.raises(ConflictingReconciliationException) as exc_info:
        await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))
    assert exc_info.value.extra["rendicion_id"] == first.id


async def test_second_rendicion_while_closed_conflicts(db_session, make_card):
    card = await make_card()
    await _closed_rendicion(db_session, card.id)

    with pytest.raises(ConflictingReconciliationException):
        await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))


async def test_new_rendicion_allowed_after_approval(db_session, make_card):
    card = await make_card()
    first = await _closed_rendicion(db_session, card.id)
    await rendicion_service.approve_rendicion(db_session, TEST_USER_ID, first.id)

    second = await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))

    assert second.id != first.id
    assert second.code == f"REND-{second.id:05d}"


async def test_store_rejects_two_open_rendiciones_per_card(db_session, make_card):
    card = await make_card()
    for _ in range(2):
        db_session.add(Rendicion(
            card_id=card.id,
            date_from=JANUARY[0],
            date_to=JANUARY[1],
            status=RendicionStatus.ABIERTA,
            created_by=TEST_USER_ID,
        ))

    with pytest.raises(IntegrityError):
        await db_session.commit()
    await db_session.rollback()


async def test_concurrent_creation_that_loses_the_race_conflicts(
    db_session, make_card, monkeypatch
):
    card = await make_card()
    first = await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))
    late = await _add_expense(db_session, card.id, date(2024, 1, 20))

    # La verificación previa no ve la rendición abierta, como en una carrera
    original = rendicion_service._find_open_rendicion_id
    calls = 0

    async def _stale_lookup(db, card_id):
        nonlocal calls
        calls += 1
        if calls == 1:
            return None
        return await original(db, card_id)

    monkeypatch.setattr(rendicion_service, "_find_open_rendicion_id", _stale_lookup)

    with pytest.raises(ConflictingReconciliationException) as exc_info:
        await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))

    assert exc_info.value.extra["rendicion_id"] == first.id
    unassigned = await movement_service.list_unassigned_expenses(db_session, card.id, *JANUARY)
    assert [e.id for e in unassigned] == [late.id]
    listed = await rendicion_service.list_rendiciones(db_session, card_id=card.id)
    assert listed.total == 1


async def test_different_cards_do_not_block_each_other(db_session, make_card):
    card = await make_card()
    other = await make_card(card_type=CardType.CORPORATIVA, alias="Corporativa")

    await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))
    second = await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(other.id))

    assert second.card_id == other.id


# ── Transiciones ─────────────────────────────────────


async def test_close_then_approve(db_session, make_card):
    card = await make_card()
    await _add_expense(db_session, card.id, date(2024, 1, 5))
    rendicion = await _closed_rendicion(db_session, card.id)

    approved = await rendicion_service.approve_rendicion(db_session, 99, rendicion.id)

    assert approved.status == RendicionStatus.APROBADA
    assert approved.approved_by == 99
    assert approved.approved_at is not None
    detail = await rendicion_service.get_rendicion(db_session, rendicion.id)
    assert len(detail.expenses) == 1


@pytest.mark.parametrize("operation", ["approve", "reject"])
async def test_open_rendicion_cannot_be_decided(db_session, make_card, operation):
    card = await make_card()
    rendicion = await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))

    with pytest.raises(InvalidTransitionException) as exc_info:
        if operation == "approve":
            await rendicion_service.approve_rendicion(db_session, TEST_USER_ID, rendicion.id)
        else:
            await rendicion_service.reject_rendicion(
                db_session, TEST_USER_ID, rendicion.id, "no corresponde"
            )

    assert exc_info.value.current == "abierta"
    assert exc_info.value.attempted == ("aprobada" if operation == "approve" else "rechazada")


async def test_terminal_states_reject_further_transitions(db_session, make_card):
    card = await make_card()
    rendicion = await _closed_rendicion(db_session, card.id)
    await rendicion_service.approve_rendicion(db_session, TEST_USER_ID, rendicion.id)

    with pytest.raises(InvalidTransitionException):
        await rendicion_service.close_rendicion(db_session, TEST_USER_ID, rendicion.id)
    with pytest.raises(InvalidTransitionException):
        await rendicion_service.reject_rendicion(db_session, TEST_USER_ID, rendicion.id, "tarde")
    with pytest.raises(InvalidTransitionException):
        await rendicion_service.approve_rendicion(db_session, TEST_USER_ID, rendicion.id)


async def test_reject_requires_reason(db_session, make_card):
    card = await make_card()
    rendicion = await _closed_rendicion(db_session, card.id)

    with pytest.raises(ValidationException) as exc_info:
        await rendicion_service.reject_rendicion(db_session, TEST_USER_ID, rendicion.id, "   ")
    assert exc_info.value.field == "rejection_reason"

    detail = await rendicion_service.get_rendicion(db_session, rendicion.id)
    assert detail.status == RendicionStatus.CERRADA


async def test_reject_releases_expenses(db_session, make_card):
    card = await make_card()
    expenses = [
        await _add_expense(db_session, card.id, date(2024, 1, day)) for day in (8, 9)
    ]
    rendicion = await _closed_rendicion(db_session, card.id)

    rejected = await rendicion_service.reject_rendicion(
        db_session, TEST_USER_ID, rendicion.id, "comprobantes ilegibles"
    )

    assert rejected.status == RendicionStatus.RECHAZADA
    assert rejected.rejection_reason == "comprobantes ilegibles"
    unassigned = await movement_service.list_unassigned_expenses(db_session, card.id, *JANUARY)
    assert [e.id for e in unassigned] == [e.id for e in expenses]
    assert all(e.rendicion_id is None for e in unassigned)
    movement = await movement_service.get_movement(db_session, expenses[0].movement_id)
    assert movement.rendicion_id is None

    # Los gastos liberados entran en una rendición nueva
    again = await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))
    assert again.expense_count == 2


async def test_reject_failure_midway_keeps_rendicion_and_assignments(
    db_session, make_card, monkeypatch
):
    card = await make_card()
    expenses = [
        await _add_expense(db_session, card.id, date(2024, 1, day)) for day in (8, 9)
    ]
    rendicion = await _closed_rendicion(db_session, card.id)

    original = rendicion_service._release_expense
    calls = 0

    async def _failing_release(db, expense):
        nonlocal calls
        calls += 1
        if calls == 2:
            raise RuntimeError("fallo simulado al liberar el segundo gasto")
        await original(db, expense)

    monkeypatch.setattr(rendicion_service, "_release_expense", _failing_release)

    with pytest.raises(RuntimeError):
        await rendicion_service.reject_rendicion(
            db_session, TEST_USER_ID, rendicion.id, "comprobantes ilegibles"
        )

    assert calls == 2
    detail = await rendicion_service.get_rendicion(db_session, rendicion.id)
    assert detail.status == RendicionStatus.CERRADA
    assert detail.rejection_reason is None
    assert [e.id for e in detail.expenses] == [e.id for e in expenses]
    for expense in expenses:
        movement = await movement_service.get_movement(db_session, expense.movement_id)
        assert movement.rendicion_id == rendicion.id


async def test_list_rendiciones_filters(db_session, make_card):
    card = await make_card()
    first = await _closed_rendicion(db_session, card.id)
    await rendicion_service.approve_rendicion(db_session, TEST_USER_ID, first.id)
    await rendicion_service.create_rendicion(db_session, TEST_USER_ID, _window(card.id))

    open_only = await rendicion_service.list_rendiciones(db_session, status=RendicionStatus.ABIERTA)
    by_card = await rendicion_service.list_rendiciones(db_session, card_id=card.id)

    assert open_only.total == 1
    assert by_card.total == 2
