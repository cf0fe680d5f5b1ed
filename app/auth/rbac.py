"""
Permisos del módulo financiero.
Los códigos viajan en el claim `permisos` del token; el rol `Super Admin`
tiene todos.
"""

SUPER_ADMIN_ROLE = "Super Admin"

# ── Códigos de permiso ───────────────────────────────
FINANZAS_LEER = "finanzas:leer"
FINANZAS_ESCRIBIR = "finanzas:escribir"
TARJETAS_LEER = "tarjetas:leer"
TARJETAS_ESCRIBIR = "tarjetas:escribir"
TARJETAS_APROBAR = "tarjetas:aprobar"


def has_permission(roles: list[str], permisos: list[str], code: str) -> bool:
    """Verifica si la combinación roles/permisos habilita el código pedido."""
    if SUPER_ADMIN_ROLE in roles:
        return True
    return code in permisos
