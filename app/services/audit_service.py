"""
Eventos de auditoría de las operaciones del ledger.

El ledger no escribe registros de auditoría: cada operación exitosa emite un
`AuditEvent` por el logger `app.audit` y el subsistema de auditoría externo
decide cómo persistirlo (handler propio).
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from uuid import UUID

audit_logger = logging.getLogger("app.audit")


def _sanitize_for_json(data: dict | None) -> dict | None:
    """Convierte tipos no serializables (date, datetime, UUID, Decimal, Enum) a JSON."""
    if data is None:
        return None
    sanitized = {}
    for key, value in data.items():
        if isinstance(value, (date, datetime)):
            sanitized[key] = value.isoformat()
        elif isinstance(value, UUID):
            sanitized[key] = str(value)
        elif isinstance(value, Decimal):
            sanitized[key] = str(value)
        elif isinstance(value, Enum):
            sanitized[key] = value.value
        elif isinstance(value, dict):
            sanitized[key] = _sanitize_for_json(value)
        elif isinstance(value, list):
            sanitized[key] = [
                _sanitize_for_json(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            sanitized[key] = value
    return sanitized


@dataclass(frozen=True)
class AuditEvent:
    actor_id: int
    action: str
    entity: str
    entity_id: str
    data: dict | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> dict:
        return _sanitize_for_json({
            "actor_id": self.actor_id,
            "action": self.action,
            "entity": self.entity,
            "entity_id": self.entity_id,
            "data": self.data,
            "occurred_at": self.occurred_at,
        })


def emit(
    *,
    actor_id: int,
    action: str,
    entity: str,
    entity_id: int | str,
    data: dict | None = None,
) -> AuditEvent:
    """Publica un evento de auditoría para una operación ya confirmada."""
    event = AuditEvent(
        actor_id=actor_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id),
        data=_sanitize_for_json(data),
    )
    audit_logger.info(
        "%s %s %s by user=%s", action, entity, event.entity_id, actor_id,
        extra={"audit": event.as_dict()},
    )
    return event
