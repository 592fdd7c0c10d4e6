"""
Dependencias para inyeccion de casos de uso.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.application.use_cases.mirror_use_cases import MirrorUseCases
from catalog_mirror.application.use_cases.organization_use_cases import OrganizationUseCases
from catalog_mirror.application.use_cases.queue_use_cases import SyncQueueUseCases
from catalog_mirror.application.use_cases.sync_orchestrator import SyncOrchestrator
from catalog_mirror.infrastructure.database.session import get_db


async def get_sync_orchestrator(
    db: AsyncSession = Depends(get_db)
) -> SyncOrchestrator:
    """
    Dependencia para obtener el orquestador de sincronizacion.

    Args:
        db: Sesion de base de datos

    Returns:
        SyncOrchestrator: Orquestador ligado a la sesion del request
    """
    return SyncOrchestrator(db)


async def get_queue_use_cases(
    db: AsyncSession = Depends(get_db)
) -> SyncQueueUseCases:
    """
    Dependencia para obtener los casos de uso de la cola de sincronizacion.

    Returns:
        SyncQueueUseCases: Instancia de casos de uso de la cola
    """
    return SyncQueueUseCases(db)


async def get_mirror_use_cases(
    db: AsyncSession = Depends(get_db)
) -> MirrorUseCases:
    return MirrorUseCases(db)


async def get_organization_use_cases(
    db: AsyncSession = Depends(get_db)
) -> OrganizationUseCases:
    """
    Dependencia para obtener los casos de uso de organizaciones.

    Args:
        db: Sesion de base de datos

    Returns:
        OrganizationUseCases: Instancia de casos de uso de organizaciones
    """
    return OrganizationUseCases(db)
