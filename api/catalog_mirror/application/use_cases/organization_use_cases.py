"""
Casos de uso de organizaciones: alta y consulta de la integracion remota.
"""
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.application.dto.sync_dto import IntegrationResponseDTO, IntegrationUpdateDTO
from catalog_mirror.infrastructure.database.models import OrganizationModel
from catalog_mirror.infrastructure.repositories.organization_repository import OrganizationRepository
from catalog_mirror.shared.exceptions.domain import EntityNotFoundException


class OrganizationUseCases:
    """Casos de uso sobre la integracion WooCommerce de una organizacion."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.repository = OrganizationRepository(db)

    async def update_integration(
        self,
        organization_id: str,
        data: IntegrationUpdateDTO,
    ) -> IntegrationResponseDTO:
        """
        Guarda las credenciales remotas (crea la organizacion si no existe).

        Args:
            organization_id: Organizacion
            data: URL de la tienda, consumer key/secret y secreto de webhook

        Returns:
            IntegrationResponseDTO: Integracion guardada, sin secretos
        """
        org = await self.repository.set_integration(
            organization_id,
            url=data.url,
            consumer_key=data.consumer_key,
            consumer_secret=data.consumer_secret,
            webhook_secret=data.webhook_secret,
            name=data.name,
        )
        await self.db.commit()
        logger.info(f"[organizations] Integracion guardada para {organization_id}")
        return self._to_response(org)

    async def get_integration(self, organization_id: str) -> IntegrationResponseDTO:
        org = await self.repository.get_by_id(organization_id)
        if org is None:
            raise EntityNotFoundException("Organizacion", organization_id)
        return self._to_response(org)

    async def get_webhook_secret(self, organization_id: str) -> Optional[str]:
        return await self.repository.get_webhook_secret(organization_id)

    @staticmethod
    def _to_response(org: OrganizationModel) -> IntegrationResponseDTO:
        org_settings = org.settings or {}
        consumer_key = org_settings.get("woocommerce_consumer_key") or ""
        return IntegrationResponseDTO(
            organization_id=org.id,
            url=org_settings.get("woocommerce_url") or "",
            consumer_key_suffix=consumer_key[-4:],
            has_webhook_secret=bool(org_settings.get("webhook_secret")),
        )
