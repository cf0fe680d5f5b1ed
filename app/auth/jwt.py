"""
Gestión de JWT con HS256.
El token lo emite el servicio de identidad; acá solo se firma (tests,
scripts) y se verifica.
"""

from datetime import datetime, timedelta, timezone

import jwt

from app.config import get_settings


class TokenType:
    ACCESS = "access"


def create_access_token(
    user_id: int,
    roles: list[str] | None = None,
    permisos: list[str] | None = None,
    extra_claims: dict | None = None,
) -> str:
    """Crea un access token JWT HS256."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "roles": roles or [],
        "permisos": permisos or [],
        "type": TokenType.ACCESS,
        "iat": now,
        "exp": now + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    if extra_claims:
        payload.update(extra_claims)

    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Decodifica y verifica un token JWT.
    Lanza jwt.InvalidTokenError si el token es inválido o expirado.
    """
    settings = get_settings()
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
