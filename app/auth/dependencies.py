"""
Dependencies de FastAPI para autenticación y permisos.
"""

from dataclasses import dataclass, field

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.auth.jwt import TokenType, decode_token
from app.auth.rbac import has_permission
from app.core.exceptions import CredentialsException, ForbiddenException

# ── Security scheme ──────────────────────────────────
security = HTTPBearer(auto_error=False)


# ── Usuario autenticado ──────────────────────────────
@dataclass
class CurrentUser:
    """Datos extraídos del token JWT decodificado."""

    id: int
    roles: list[str] = field(default_factory=list)
    permisos: list[str] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict) -> "CurrentUser":
        return cls(
            id=int(payload["sub"]),
            roles=list(payload.get("roles", [])),
            permisos=list(payload.get("permisos", [])),
        )

    def can(self, code: str) -> bool:
        return has_permission(self.roles, self.permisos, code)


# ── Obtener usuario actual ───────────────────────────
async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> CurrentUser:
    """Decodifica el JWT del header Authorization."""
    if credentials is None:
        raise CredentialsException("No autenticado")
    try:
        payload = decode_token(credentials.credentials)
    except jwt.InvalidTokenError:
        raise CredentialsException("Token inválido o expirado")

    if payload.get("type", TokenType.ACCESS) != TokenType.ACCESS:
        raise CredentialsException("Tipo de token inválido")
    try:
        return CurrentUser.from_payload(payload)
    except (KeyError, TypeError, ValueError):
        raise CredentialsException("Token sin usuario válido")


# ── Factory de dependency con permisos ───────────────
def require_permission(code: str):
    """
    Factory que crea un dependency que verifica un código de permiso.

    Uso:
        @router.post("/cuentas")
        async def create(user: CurrentUser = Depends(require_permission(FINANZAS_ESCRIBIR))):
            ...
    """

    async def _check_permission(
        user: CurrentUser = Depends(get_current_user),
    ) -> CurrentUser:
        if not user.can(code):
            raise ForbiddenException(f"Se requiere el permiso: {code}")
        return user

    return _check_permission
