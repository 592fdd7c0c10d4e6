"""
Endpoints de organizaciones (integracion con WooCommerce).
"""
from fastapi import APIRouter, Depends

from catalog_mirror.api.v1.dependencies.use_case_deps import get_organization_use_cases
from catalog_mirror.application.dto.sync_dto import IntegrationResponseDTO, IntegrationUpdateDTO
from catalog_mirror.application.use_cases.organization_use_cases import OrganizationUseCases


router = APIRouter(prefix="/organizations", tags=["Organizations"])


@router.put("/{organization_id}/integration", response_model=IntegrationResponseDTO)
async def update_integration(
    organization_id: str,
    request: IntegrationUpdateDTO,
    use_cases: OrganizationUseCases = Depends(get_organization_use_cases),
):
    """
    Guarda URL y credenciales de la tienda WooCommerce de la organizacion.

    La respuesta nunca incluye el consumer secret ni el secreto de webhook.
    """
    return await use_cases.update_integration(organization_id, request)


@router.get("/{organization_id}/integration", response_model=IntegrationResponseDTO)
async def get_integration(
    organization_id: str,
    use_cases: OrganizationUseCases = Depends(get_organization_use_cases),
):
    return await use_cases.get_integration(organization_id)
