"""
Router principal de la API v1.
Agrupa todos los sub-routers de la versión 1.
"""

from fastapi import APIRouter

from app.api.v1.accounts import router as accounts_router
from app.api.v1.movements import router as movements_router
from app.api.v1.transfers import router as transfers_router
from app.api.v1.dashboard import router as dashboard_router
from app.api.v1.rendiciones import router as rendiciones_router
from app.api.v1.cards import router as cards_router

api_v1_router = APIRouter()

# ── Finanzas ─────────────────────────────────────────
api_v1_router.include_router(accounts_router, prefix="/finanzas/cuentas", tags=["Cuentas"])
api_v1_router.include_router(movements_router, prefix="/finanzas/movimientos", tags=["Movimientos"])
api_v1_router.include_router(transfers_router, prefix="/finanzas/transferencias", tags=["Transferencias"])
api_v1_router.include_router(dashboard_router, prefix="/finanzas", tags=["Dashboard"])

# ── Tarjetas ─────────────────────────────────────────
# Rendiciones antes que tarjetas: /tarjetas/{card_id} capturaría /tarjetas/rendiciones
api_v1_router.include_router(rendiciones_router, prefix="/tarjetas/rendiciones", tags=["Rendiciones"])
api_v1_router.include_router(cards_router, prefix="/tarjetas", tags=["Tarjetas"])
