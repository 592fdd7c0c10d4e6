"""
Endpoints del motor de sincronizacion con WooCommerce.

Las corridas largas (full / specific) aceptan `?background=true`: se
devuelve el SyncRun inicial y el cliente hace polling de `/run`.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from catalog_mirror.api.v1.dependencies.use_case_deps import (
    get_queue_use_cases,
    get_sync_orchestrator,
)
from catalog_mirror.application.dto.sync_dto import (
    DiscoveryResultDTO,
    PullRequestDTO,
    PullResultDTO,
    QueueAddRequestDTO,
    QueueProcessRequestDTO,
    QueueProcessResultDTO,
    QueueStatusDTO,
    SpecificSyncRequestDTO,
    SyncQueueItemDTO,
    SyncRunDTO,
    SyncStatusDTO,
)
from catalog_mirror.application.use_cases.queue_use_cases import SyncQueueUseCases
from catalog_mirror.application.use_cases.sync_orchestrator import SyncOrchestrator
from catalog_mirror.shared.constants.sync_constants import EntityType, QueueStatus
from catalog_mirror.shared.exceptions.domain import EntityNotFoundException


router = APIRouter(prefix="/organizations/{organization_id}/sync", tags=["Sync"])


# ----------------------------------------------------------------------
# Cola (rutas fijas antes de /{entity_type} para que no colisionen)
# ----------------------------------------------------------------------

@router.post("/queue/process", response_model=QueueProcessResultDTO)
async def process_queue(
    organization_id: str,
    request: QueueProcessRequestDTO,
    use_cases: SyncQueueUseCases = Depends(get_queue_use_cases),
):
    """Procesa un lote de cambios locales pendientes y vencidos."""
    result = await use_cases.process_queue(
        organization_id,
        batch_size=request.batch_size,
        max_retries=request.max_retries,
        entity_type=request.entity_type.value if request.entity_type else None,
    )
    return QueueProcessResultDTO.model_validate(result)


@router.get("/queue/status", response_model=QueueStatusDTO)
async def get_queue_status(
    organization_id: str,
    use_cases: SyncQueueUseCases = Depends(get_queue_use_cases),
):
    return await use_cases.get_queue_status(organization_id)


@router.get("/queue", response_model=List[SyncQueueItemDTO])
async def list_queue_items(
    organization_id: str,
    status_filter: Optional[QueueStatus] = Query(None, alias="status"),
    entity_type: Optional[EntityType] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    use_cases: SyncQueueUseCases = Depends(get_queue_use_cases),
):
    return await use_cases.list_queue_items(
        organization_id,
        status=status_filter.value if status_filter else None,
        entity_type=entity_type.value if entity_type else None,
        limit=limit,
        offset=offset,
    )


@router.post("/queue", response_model=SyncQueueItemDTO, status_code=status.HTTP_201_CREATED)
async def add_to_queue(
    organization_id: str,
    request: QueueAddRequestDTO,
    use_cases: SyncQueueUseCases = Depends(get_queue_use_cases),
):
    """Encola un cambio local para replicarlo en la plataforma remota."""
    return await use_cases.add_to_queue(
        organization_id,
        entity_type=request.entity_type.value,
        entity_id=request.entity_id,
        operation=request.operation.value,
        data=request.data,
        priority=request.priority,
        max_attempts=request.max_attempts,
    )


@router.post("/queue/{item_id}/requeue", response_model=SyncQueueItemDTO)
async def requeue_item(
    organization_id: str,
    item_id: int,
    use_cases: SyncQueueUseCases = Depends(get_queue_use_cases),
):
    return await use_cases.requeue_item(organization_id, item_id)


@router.delete("/queue/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_queue_item(
    organization_id: str,
    item_id: int,
    use_cases: SyncQueueUseCases = Depends(get_queue_use_cases),
):
    await use_cases.delete_queue_item(organization_id, item_id)


# ----------------------------------------------------------------------
# Etapas por tipo de entidad
# ----------------------------------------------------------------------

@router.post("/{entity_type}/discover", response_model=DiscoveryResultDTO)
async def discover(
    organization_id: str,
    entity_type: EntityType,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    """Compara el indice remoto con el espejo local sin modificarlo."""
    result = await orchestrator.discover(organization_id, entity_type)
    return DiscoveryResultDTO.model_validate(result)


@router.post("/{entity_type}/pull", response_model=PullResultDTO)
async def pull(
    organization_id: str,
    entity_type: EntityType,
    request: PullRequestDTO,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    """
    Trae ids puntuales y los guarda en el espejo.

    Toma el claim del alcance: responde 409 si hay otra corrida activa.
    """
    result = await orchestrator.pull_ids(
        organization_id,
        entity_type,
        request.ids,
        batch_size=request.batch_size,
    )
    return PullResultDTO.model_validate(result)


@router.post("/{entity_type}/full", response_model=SyncRunDTO)
async def full_sync(
    organization_id: str,
    entity_type: EntityType,
    background: bool = Query(False, description="Ejecutar en background y hacer polling de /run"),
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    """Discovery -> Pull -> Push para el tipo de entidad."""
    if background:
        run = await orchestrator.start_full_sync(organization_id, entity_type)
    else:
        run = await orchestrator.full_sync(organization_id, entity_type)
    return SyncRunDTO.model_validate(run)


@router.post("/{entity_type}/specific", response_model=SyncRunDTO)
async def sync_specific(
    organization_id: str,
    entity_type: EntityType,
    request: SpecificSyncRequestDTO,
    background: bool = Query(False),
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    if background:
        run = await orchestrator.start_sync_specific(organization_id, entity_type, request.ids)
    else:
        run = await orchestrator.sync_specific(organization_id, entity_type, request.ids)
    return SyncRunDTO.model_validate(run)


@router.get("/{entity_type}/status", response_model=SyncStatusDTO)
async def get_sync_status(
    organization_id: str,
    entity_type: EntityType,
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    return await orchestrator.get_status(organization_id, entity_type)


@router.get("/{entity_type}/run", response_model=SyncRunDTO)
async def get_sync_run(organization_id: str, entity_type: EntityType):
    """Estado de la ultima corrida del alcance (para polling)."""
    run = SyncOrchestrator.get_run(organization_id, entity_type)
    if run is None:
        raise EntityNotFoundException("SyncRun", f"{organization_id}/{entity_type.value}")
    return SyncRunDTO.model_validate(run)
