"""
Errores operacionales del ledger financiero.

Cada excepción lleva un `code` estable y detalles estructurados para que la
capa HTTP arme la respuesta sin que los servicios sepan de presentación.
"""

from typing import Any

from fastapi import HTTPException, status


class LedgerException(Exception):
    """Base de los errores esperados del dominio."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "ledger_error"
    default_message: str = "Operación inválida"

    def __init__(self, message: str | None = None, **extra: Any):
        self.message = message or self.default_message
        self.extra = {k: v for k, v in extra.items() if v is not None}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "detail": self.message, **self.extra}


class NotFoundException(LedgerException):
    """Cuenta, movimiento, tarjeta o rendición inexistente (404)."""

    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"

    def __init__(self, resource: str = "Recurso", resource_id: Any = None):
        super().__init__(
            f"{resource} no encontrado",
            resource=resource,
            resource_id=resource_id,
        )


class InvalidAccountException(LedgerException):
    """Cuenta inactiva o inexistente como participante de una operación."""

    code = "invalid_account"
    default_message = "La cuenta no existe o no está activa"


class InvalidTransferException(InvalidAccountException):
    """Origen y destino de la transferencia son la misma cuenta."""

    code = "invalid_transfer"
    default_message = "La cuenta origen y destino no pueden ser la misma"


class InvalidCardTypeException(LedgerException):
    code = "invalid_card_type"
    default_message = "Solo tarjetas precargables pueden recibir cargas"


class InvalidTransitionException(LedgerException):
    """Transición de estado no permitida (409)."""

    status_code = status.HTTP_409_CONFLICT
    code = "invalid_transition"

    def __init__(self, entity: str, current: str, attempted: str, message: str | None = None):
        super().__init__(
            message or f"{entity}: no se puede pasar de '{current}' a '{attempted}'",
            entity=entity,
            current=current,
            attempted=attempted,
        )
        self.current = current
        self.attempted = attempted


class ConflictingReconciliationException(LedgerException):
    """Ya hay una rendición abierta o pendiente de aprobación (409)."""

    status_code = status.HTTP_409_CONFLICT
    code = "conflicting_reconciliation"
    default_message = (
        "Ya existe una rendición abierta o pendiente de aprobación para esta tarjeta"
    )

    def __init__(self, card_id: int, rendicion_id: int | None = None):
        super().__init__(card_id=card_id, rendicion_id=rendicion_id)


class ValidationException(LedgerException):
    """Entrada fuera de rango o mal formada (422)."""

    status_code = 422
    code = "validation_error"
    default_message = "Error de validación"

    def __init__(self, message: str | None = None, field: str | None = None):
        super().__init__(message, field=field)
        self.field = field


def reject_nulls(changes: dict, *fields: str) -> None:
    """Un PATCH no puede vaciar columnas obligatorias con un null explícito."""
    for field in fields:
        if field in changes and changes[field] is None:
            raise ValidationException(f"El campo {field} no puede ser nulo", field=field)


# ── Errores de autenticación (capa HTTP) ─────────────


class CredentialsException(HTTPException):
    """Error de credenciales inválidas (401)."""

    def __init__(self, detail: str = "Credenciales inválidas"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(HTTPException):
    """Error de permisos insuficientes (403)."""

    def __init__(self, detail: str = "No tiene permisos para realizar esta acción"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
        )
