"""
Excepciones del motor de sincronizacion.

Taxonomia:
- ConfigurationError: credenciales remotas ausentes o invalidas (fatal, sin reintento)
- RemoteUnavailable: fallo de red / timeout / 5xx / 429 / autenticacion remota
- RemoteRejected: error semantico 4xx de la plataforma remota (p.ej. validacion)
- LocalStoreError: fallo del almacen local (fatal para la etapa actual)
- SyncAlreadyRunning: ya existe una corrida activa para el mismo alcance
"""
from typing import Any, Dict, Optional

from catalog_mirror.shared.exceptions.base import AppException


class SyncException(AppException):
    """Excepcion base para errores de sincronizacion."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "SYNC_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details
        )


class ConfigurationError(SyncException):
    """La organizacion no tiene una integracion remota configurada."""

    def __init__(self, message: str, organization_id: Optional[str] = None):
        details = {"organization_id": organization_id} if organization_id else None
        super().__init__(
            message=message,
            status_code=400,
            error_code="CONFIGURATION_ERROR",
            details=details
        )


class RemoteUnavailable(SyncException):
    """Fallo de red o HTTP hablando con la plataforma remota."""

    def __init__(self, message: str, http_status: Optional[int] = None):
        self.http_status = http_status
        super().__init__(
            message=message,
            status_code=502,
            error_code="REMOTE_UNAVAILABLE",
            details={"http_status": http_status} if http_status else None
        )


class RemoteRejected(SyncException):
    """La plataforma remota rechazo la peticion (4xx semantico)."""

    def __init__(self, message: str, http_status: Optional[int] = None):
        self.http_status = http_status
        super().__init__(
            message=message,
            status_code=422,
            error_code="REMOTE_REJECTED",
            details={"http_status": http_status} if http_status else None
        )


class LocalStoreError(SyncException):
    """Fallo del almacen local."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=500,
            error_code="LOCAL_STORE_ERROR"
        )


class SyncAlreadyRunning(SyncException):
    """Ya hay una corrida activa para (organizacion, tipo de entidad)."""

    def __init__(self, organization_id: str, entity_type: str):
        super().__init__(
            message=(
                f"Ya existe una sincronizacion activa para {entity_type} "
                f"en la organizacion {organization_id}"
            ),
            status_code=409,
            error_code="SYNC_ALREADY_RUNNING",
            details={"organization_id": organization_id, "entity_type": entity_type}
        )
