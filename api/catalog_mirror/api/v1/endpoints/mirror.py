"""
Endpoints del espejo local.

Toda mutacion se aplica en el espejo y se encola para la plataforma
remota; el push ocurre al procesar la cola.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from catalog_mirror.api.v1.dependencies.use_case_deps import (
    get_mirror_use_cases,
    get_queue_use_cases,
)
from catalog_mirror.application.dto.sync_dto import (
    MirrorEntityChangeDTO,
    MirrorEntityDTO,
    SyncQueueItemDTO,
)
from catalog_mirror.application.use_cases.mirror_use_cases import MirrorUseCases
from catalog_mirror.application.use_cases.queue_use_cases import SyncQueueUseCases
from catalog_mirror.shared.constants.sync_constants import EntityType


router = APIRouter(prefix="/organizations/{organization_id}/mirror", tags=["Mirror"])


@router.get("/{entity_type}", response_model=List[MirrorEntityDTO])
async def list_entities(
    organization_id: str,
    entity_type: EntityType,
    response: Response,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    use_cases: MirrorUseCases = Depends(get_mirror_use_cases),
):
    """Pagina de filas espejo; el total de la organizacion va en X-Total-Count."""
    total = await use_cases.count_entities(organization_id, entity_type)
    response.headers["X-Total-Count"] = str(total)
    return await use_cases.list_entities(organization_id, entity_type, limit, offset)


@router.get("/{entity_type}/{remote_id}", response_model=MirrorEntityDTO)
async def get_entity(
    organization_id: str,
    entity_type: EntityType,
    remote_id: int,
    use_cases: MirrorUseCases = Depends(get_mirror_use_cases),
):
    return await use_cases.get_entity(organization_id, entity_type, remote_id)


@router.post("/{entity_type}", response_model=MirrorEntityDTO, status_code=status.HTTP_201_CREATED)
async def create_entity(
    organization_id: str,
    entity_type: EntityType,
    request: MirrorEntityChangeDTO,
    use_cases: SyncQueueUseCases = Depends(get_queue_use_cases),
):
    """Crea la entidad localmente con id provisional (negativo) y encola su alta remota."""
    return await use_cases.record_local_create(organization_id, entity_type.value, request.data)


@router.put("/{entity_type}/{remote_id}", response_model=MirrorEntityDTO)
async def update_entity(
    organization_id: str,
    entity_type: EntityType,
    remote_id: int,
    request: MirrorEntityChangeDTO,
    use_cases: SyncQueueUseCases = Depends(get_queue_use_cases),
):
    return await use_cases.record_local_update(
        organization_id, entity_type.value, remote_id, request.data
    )


@router.delete("/{entity_type}/{remote_id}", response_model=Optional[SyncQueueItemDTO])
async def delete_entity(
    organization_id: str,
    entity_type: EntityType,
    remote_id: int,
    use_cases: SyncQueueUseCases = Depends(get_queue_use_cases),
):
    """
    Encola el borrado; la fila local se elimina cuando el remoto confirma.

    Una entidad con id provisional se borra en el acto y responde null.
    """
    return await use_cases.record_local_delete(organization_id, entity_type.value, remote_id)
