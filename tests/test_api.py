"""
Tests de la capa HTTP: rutas, permisos y mapeo de errores.
"""

from decimal import Decimal

from httpx import AsyncClient

from app.auth.jwt import create_access_token
from app.auth.rbac import FINANZAS_LEER

API = "/api/v1"


async def _create_account(client: AsyncClient, name: str, opening: str = "0") -> dict:
    response = await client.post(
        f"{API}/finanzas/cuentas",
        json={"name": name, "account_type": "cuenta_corriente", "opening_balance": opening},
    )
    assert response.status_code == 201
    return response.json()


async def _create_card(client: AsyncClient, card_type: str, account_id: int) -> dict:
    response = await client.post(
        f"{API}/tarjetas",
        json={"card_type": card_type, "employee_id": 5, "account_id": account_id},
    )
    assert response.status_code == 201
    return response.json()


async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ── Finanzas ─────────────────────────────────────────


async def test_movement_and_void_flow(client: AsyncClient):
    account = await _create_account(client, "Banco Nación", "1000")

    created = await client.post(
        f"{API}/finanzas/movimientos",
        json={
            "account_id": account["id"],
            "movement_type": "expense",
            "amount": "300",
            "description": "Pago de servicios",
            "movement_date": "2024-01-10",
        },
    )
    assert created.status_code == 201
    movement_id = created.json()["id"]

    detail = await client.get(f"{API}/finanzas/cuentas/{account['id']}")
    assert Decimal(detail.json()["current_balance"]) == Decimal("700")
    assert len(detail.json()["recent_movements"]) == 1

    voided = await client.post(
        f"{API}/finanzas/movimientos/{movement_id}/anular", json={"reason": "duplicado"}
    )
    assert voided.status_code == 200
    assert voided.json()["status"] == "voided"

    again = await client.post(f"{API}/finanzas/movimientos/{movement_id}/anular")
    assert again.status_code == 409
    body = again.json()
    assert body["code"] == "invalid_transition"
    assert body["current"] == "voided"
    assert body["attempted"] == "voided"


async def test_transfer_errors_are_mapped(client: AsyncClient):
    account = await _create_account(client, "Caja chica", "100")

    same = await client.post(
        f"{API}/finanzas/transferencias",
        json={
            "source_account_id": account["id"],
            "destination_account_id": account["id"],
            "amount": "10",
            "description": "Misma cuenta",
            "movement_date": "2024-01-10",
        },
    )
    assert same.status_code == 400
    assert same.json()["code"] == "invalid_transfer"

    missing = await client.post(
        f"{API}/finanzas/transferencias",
        json={
            "source_account_id": account["id"],
            "destination_account_id": 999,
            "amount": "10",
            "description": "Cuenta inexistente",
            "movement_date": "2024-01-10",
        },
    )
    assert missing.status_code == 400
    assert missing.json()["code"] == "invalid_account"


async def test_transfer_and_dashboard(client: AsyncClient):
    source = await _create_account(client, "Banco", "1000")
    destination = await _create_account(client, "Mercado Pago")

    created = await client.post(
        f"{API}/finanzas/transferencias",
        json={
            "source_account_id": source["id"],
            "destination_account_id": destination["id"],
            "amount": "250.75",
            "description": "Fondeo billetera",
            "movement_date": "2024-01-10",
        },
    )
    assert created.status_code == 201
    ref = created.json()["transfer_ref"]

    fetched = await client.get(f"{API}/finanzas/transferencias/{ref}")
    assert fetched.status_code == 200
    assert fetched.json()["incoming"]["account_id"] == destination["id"]

    balances = await client.get(f"{API}/finanzas/saldos")
    assert Decimal(balances.json()["total"]) == Decimal("1000")

    dashboard = await client.get(f"{API}/finanzas/dashboard")
    assert dashboard.status_code == 200
    assert len(dashboard.json()["accounts"]) == 2


async def test_missing_account_is_404(client: AsyncClient):
    response = await client.get(f"{API}/finanzas/cuentas/4040")
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


async def test_schema_validation_rejects_non_positive_amount(client: AsyncClient):
    account = await _create_account(client, "Banco")
    response = await client.post(
        f"{API}/finanzas/movimientos",
        json={
            "account_id": account["id"],
            "movement_type": "income",
            "amount": "-5",
            "description": "Negativo",
            "movement_date": "2024-01-10",
        },
    )
    assert response.status_code == 422


async def test_patch_with_explicit_null_on_required_field_is_422(client: AsyncClient):
    account = await _create_account(client, "Banco", "100")
    created = await client.post(
        f"{API}/finanzas/movimientos",
        json={
            "account_id": account["id"],
            "movement_type": "expense",
            "amount": "30",
            "description": "Compra pendiente",
            "movement_date": "2024-01-10",
            "pending": True,
        },
    )
    movement_id = created.json()["id"]

    response = await client.patch(
        f"{API}/finanzas/movimientos/{movement_id}", json={"description": None}
    )
    assert response.status_code == 422
    assert response.json()["field"] == "description"

    response = await client.patch(
        f"{API}/finanzas/cuentas/{account['id']}", json={"opening_balance": None}
    )
    assert response.status_code == 422
    assert response.json()["field"] == "opening_balance"

    detail = await client.get(f"{API}/finanzas/cuentas/{account['id']}")
    assert Decimal(detail.json()["opening_balance"]) == Decimal("100")
    assert detail.json()["recent_movements"][0]["description"] == "Compra pendiente"


# ── Tarjetas y rendiciones ───────────────────────────


async def test_top_up_on_corporate_card_is_400(client: AsyncClient):
    account = await _create_account(client, "Respaldo")
    card = await _create_card(client, "corporativa", account["id"])

    response = await client.post(
        f"{API}/tarjetas/{card['id']}/cargas",
        json={"amount": "100", "top_up_date": "2024-01-05"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "invalid_card_type"


async def test_rendicion_flow_over_http(client: AsyncClient):
    account = await _create_account(client, "Respaldo")
    card = await _create_card(client, "precargable", account["id"])
    await client.post(
        f"{API}/tarjetas/{card['id']}/cargas",
        json={"amount": "500", "top_up_date": "2024-01-05"},
    )
    expense = await client.post(
        f"{API}/tarjetas/{card['id']}/gastos",
        json={"category": "peajes", "amount": "100", "expense_date": "2024-01-10", "concept": "Peaje"},
    )
    assert expense.status_code == 201

    payload = {"card_id": card["id"], "date_from": "2024-01-01", "date_to": "2024-01-31"}
    created = await client.post(f"{API}/tarjetas/rendiciones", json=payload)
    assert created.status_code == 201
    rendicion = created.json()
    assert rendicion["expense_count"] == 1

    conflict = await client.post(f"{API}/tarjetas/rendiciones", json=payload)
    assert conflict.status_code == 409
    assert conflict.json()["code"] == "conflicting_reconciliation"
    assert conflict.json()["rendicion_id"] == rendicion["id"]

    early = await client.post(f"{API}/tarjetas/rendiciones/{rendicion['id']}/aprobar")
    assert early.status_code == 409
    assert early.json()["current"] == "abierta"

    closed = await client.post(f"{API}/tarjetas/rendiciones/{rendicion['id']}/cerrar")
    assert closed.json()["status"] == "cerrada"

    blank = await client.post(
        f"{API}/tarjetas/rendiciones/{rendicion['id']}/rechazar",
        json={"rejection_reason": "  "},
    )
    assert blank.status_code == 422
    assert blank.json()["field"] == "rejection_reason"

    listed = await client.get(f"{API}/tarjetas/rendiciones", params={"status": "cerrada"})
    assert listed.status_code == 200
    assert listed.json()["total"] == 1

    summary = await client.get(f"{API}/tarjetas/resumen")
    assert summary.json()["pending_rendiciones"] == 1


# ── Autenticación ────────────────────────────────────


async def test_missing_token_is_401(anonymous_client: AsyncClient):
    response = await anonymous_client.get(f"{API}/finanzas/cuentas")
    assert response.status_code == 401


async def test_permission_codes_are_enforced(anonymous_client: AsyncClient):
    token = create_access_token(3, roles=["Administrativo"], permisos=[FINANZAS_LEER])
    headers = {"Authorization": f"Bearer {token}"}

    readable = await anonymous_client.get(f"{API}/finanzas/cuentas", headers=headers)
    assert readable.status_code == 200

    forbidden = await anonymous_client.post(
        f"{API}/finanzas/cuentas",
        json={"name": "No permitida", "account_type": "caja_chica"},
        headers=headers,
    )
    assert forbidden.status_code == 403


async def test_invalid_token_is_401(anonymous_client: AsyncClient):
    response = await anonymous_client.get(
        f"{API}/tarjetas", headers={"Authorization": "Bearer no-es-un-jwt"}
    )
    assert response.status_code == 401
