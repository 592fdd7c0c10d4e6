"""
Errores de reglas de negocio: entidades inexistentes, entradas invalidas
y operaciones que el estado actual de la cola no admite.
"""
from typing import Any, Dict, Optional

from catalog_mirror.shared.exceptions.base import AppException


class DomainException(AppException):
    """Base de los errores de dominio (400 salvo que la subclase diga otra cosa)."""

    def __init__(
        self,
        message: str,
        error_code: str = "DOMAIN_ERROR",
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400,
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class EntityNotFoundException(DomainException):

    def __init__(self, entity_name: str, entity_id: Any):
        super().__init__(
            message=f"{entity_name} con ID {entity_id} no encontrado",
            error_code="ENTITY_NOT_FOUND",
            details={"entity": entity_name, "id": str(entity_id)},
            status_code=404,
        )


class ValidationException(DomainException):
    """Entrada invalida; `field` apunta al campo culpable cuando se conoce."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={"field": field} if field else None,
        )


class InvalidQueueTransitionException(DomainException):
    """El item de la cola esta en un estado que no admite la accion pedida."""

    def __init__(self, item_id: int, status: str, action: str):
        super().__init__(
            message=f"El item {item_id} en estado '{status}' no admite '{action}'",
            error_code="INVALID_QUEUE_TRANSITION",
            details={"item_id": item_id, "status": status, "action": action},
            status_code=409,
        )
