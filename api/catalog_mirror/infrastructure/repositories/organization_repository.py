"""
Repositorio de organizaciones (tenants) y su integracion remota.
"""
from typing import Any, Dict, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_mirror.infrastructure.database.models import OrganizationModel
from catalog_mirror.infrastructure.external.woocommerce.types import (
    RemoteCredentials,
    normalize_store_url,
)
from catalog_mirror.shared.exceptions.sync import ConfigurationError


class OrganizationRepository:
    """Gestiona la tabla organizations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, organization_id: str) -> Optional[OrganizationModel]:
        return await self.db.get(OrganizationModel, organization_id)

    async def get_remote_credentials(self, organization_id: str) -> RemoteCredentials:
        """
        Lee las credenciales de WooCommerce desde settings de la organizacion.

        Raises:
            ConfigurationError: Si la organizacion no existe o la integracion esta incompleta
        """
        org = await self.get_by_id(organization_id)
        if org is None:
            raise ConfigurationError(
                f"Organizacion no encontrada: {organization_id}",
                organization_id=organization_id,
            )

        org_settings = org.settings or {}
        credentials = RemoteCredentials(
            url=org_settings.get("woocommerce_url") or "",
            consumer_key=org_settings.get("woocommerce_consumer_key") or "",
            consumer_secret=org_settings.get("woocommerce_consumer_secret") or "",
        )
        if not credentials.is_complete:
            raise ConfigurationError(
                "WooCommerce no esta configurado para esta organizacion",
                organization_id=organization_id,
            )
        return credentials.normalized()

    async def get_webhook_secret(self, organization_id: str) -> Optional[str]:
        org = await self.get_by_id(organization_id)
        if org is None:
            return None
        return (org.settings or {}).get("webhook_secret")

    async def set_integration(
        self,
        organization_id: str,
        *,
        url: str,
        consumer_key: str,
        consumer_secret: str,
        webhook_secret: Optional[str] = None,
        name: Optional[str] = None,
    ) -> OrganizationModel:
        """
        Crea o actualiza la integracion remota de una organizacion.
        """
        org = await self.get_by_id(organization_id)
        integration: Dict[str, Any] = {
            "woocommerce_url": normalize_store_url(url),
            "woocommerce_consumer_key": consumer_key.strip(),
            "woocommerce_consumer_secret": consumer_secret.strip(),
        }
        if webhook_secret is not None:
            integration["webhook_secret"] = webhook_secret

        if org is None:
            org = OrganizationModel(
                id=organization_id,
                name=name or organization_id,
                settings=integration,
            )
            self.db.add(org)
        else:
            # Reasignar el dict completo para que SQLAlchemy detecte el cambio en JSON
            org.settings = {**(org.settings or {}), **integration}
            if name:
                org.name = name

        await self.db.flush()
        logger.info(f"Integracion WooCommerce actualizada para organizacion {organization_id}")
        return org
