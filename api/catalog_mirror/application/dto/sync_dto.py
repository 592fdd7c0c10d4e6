"""
DTOs del motor de sincronizacion.
Definen la estructura de requests/responses de la API de sync.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from catalog_mirror.shared.constants.sync_constants import EntityType, QueueOperation


class PullRequestDTO(BaseModel):
    """Request para traer ids puntuales."""

    ids: List[int] = Field(..., min_length=1, description="Ids remotos a traer")
    batch_size: Optional[int] = Field(None, ge=1, le=100, description="Tamaño del lote")


class SpecificSyncRequestDTO(BaseModel):
    """Request de sincronizacion de entidades especificas."""

    ids: List[int] = Field(..., min_length=1, description="Ids remotos a sincronizar")


class QueueProcessRequestDTO(BaseModel):
    """Request para procesar un lote de la cola."""

    batch_size: Optional[int] = Field(None, ge=1, le=500)
    max_retries: Optional[int] = Field(None, ge=1, le=20)
    entity_type: Optional[EntityType] = None


class QueueAddRequestDTO(BaseModel):
    """Request para encolar un cambio local."""

    entity_type: EntityType
    entity_id: int
    operation: QueueOperation
    data: Optional[Dict[str, Any]] = None
    priority: Optional[int] = Field(None, ge=0, le=100)
    max_attempts: Optional[int] = Field(None, ge=1, le=20)


class IntegrationUpdateDTO(BaseModel):
    """Credenciales de WooCommerce de una organizacion."""

    url: str = Field(..., min_length=3, description="URL de la tienda")
    consumer_key: str = Field(..., min_length=1)
    consumer_secret: str = Field(..., min_length=1)
    webhook_secret: Optional[str] = Field(None, description="Secreto para validar webhooks")
    name: Optional[str] = Field(None, max_length=255, description="Nombre de la organizacion")

    @field_validator("url")
    @classmethod
    def url_without_spaces(cls, v: str) -> str:
        if " " in v.strip():
            raise ValueError("La URL no puede contener espacios")
        return v.strip()


class IntegrationResponseDTO(BaseModel):
    """Integracion guardada (sin exponer el secret)."""

    organization_id: str
    url: str
    consumer_key_suffix: str
    has_webhook_secret: bool


class MirrorEntityChangeDTO(BaseModel):
    """Cambio local sobre una entidad espejada (payload con forma remota)."""

    data: Dict[str, Any] = Field(default_factory=dict)


class MirrorEntityDTO(BaseModel):
    """Fila espejo."""

    id: int
    organization_id: str
    remote_id: int
    payload: Dict[str, Any]
    last_modified: Optional[datetime] = None
    synced_at: Optional[datetime] = None

    class Config:
        """Configuración de Pydantic."""
        from_attributes = True


class DiscoveryResultDTO(BaseModel):
    """Resultado del discovery."""

    organization_id: str
    entity_type: EntityType
    total_remote: int
    total_local: int
    missing_ids: List[int]
    changed_ids: List[int]
    to_create_remote: List[Dict[str, Any]]
    to_update_remote: List[Dict[str, Any]]
    to_delete_remote: List[int]
    conflicts: List[Dict[str, Any]]
    last_modified: Optional[datetime] = None

    class Config:
        """Configuración de Pydantic."""
        from_attributes = True


class PullResultDTO(BaseModel):
    requested: int
    processed: int
    errors: int
    failed_ids: List[int]

    class Config:
        from_attributes = True


class QueueProcessResultDTO(BaseModel):
    processed: int
    errors: int
    skipped: int

    class Config:
        from_attributes = True


class SyncQueueItemDTO(BaseModel):
    """Item de la cola de sincronizacion."""

    id: int
    organization_id: str
    entity_type: str
    entity_id: int
    operation: str
    data: Optional[Dict[str, Any]] = None
    status: str
    attempts: int
    max_attempts: int
    priority: int
    scheduled_at: Optional[datetime] = None
    last_error: Optional[str] = None
    processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        """Configuración de Pydantic."""
        from_attributes = True


class QueueStatusDTO(BaseModel):
    """Conteos de la cola por estado y por tipo de entidad."""

    organization_id: str
    by_status: Dict[str, int]
    by_entity_type: Dict[str, int]


class SyncStatusDTO(BaseModel):
    """Fila de sync_status."""

    organization_id: str
    entity_type: str
    is_syncing: bool
    status: str
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="sync_meta")
    total_items: int
    processed_items: int
    last_error: Optional[str] = None
    last_discover_at: Optional[datetime] = None
    last_sync_time: Optional[datetime] = None
    started_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        """Configuración de Pydantic."""
        from_attributes = True


class SyncRunDTO(BaseModel):
    """Estado de una corrida (para polling)."""

    run_id: str
    organization_id: str
    entity_type: EntityType
    kind: str
    state: str
    progress: int
    current_step: str
    items_processed: int
    total_items: int
    error: Optional[str] = None
    summary: Dict[str, Any] = Field(default_factory=dict)
    started_at: datetime
    updated_at: datetime
    finished_at: Optional[datetime] = None

    @field_validator("kind", "state", mode="before")
    @classmethod
    def enum_to_value(cls, v: Any) -> Any:
        return getattr(v, "value", v)

    class Config:
        """Configuración de Pydantic."""
        from_attributes = True


class WebhookAckDTO(BaseModel):
    """Respuesta al webhook entrante."""

    status: str
    topic: Optional[str] = None
    entity_type: Optional[EntityType] = None
    remote_id: Optional[int] = None
    run_id: Optional[str] = None
