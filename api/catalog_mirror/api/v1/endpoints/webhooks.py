"""
Webhooks entrantes de WooCommerce.

Cada aviso valido dispara un sync_specific([id]) en background. Los
borrados remotos solo se registran: el espejo no elimina filas por
webhook.
"""
import json
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from loguru import logger

from catalog_mirror.api.v1.dependencies.use_case_deps import (
    get_organization_use_cases,
    get_sync_orchestrator,
)
from catalog_mirror.application.dto.sync_dto import WebhookAckDTO
from catalog_mirror.application.services.webhook_signature import is_valid_signature, parse_topic
from catalog_mirror.application.use_cases.organization_use_cases import OrganizationUseCases
from catalog_mirror.application.use_cases.sync_orchestrator import SyncOrchestrator
from catalog_mirror.infrastructure.external.woocommerce.types import extract_remote_id
from catalog_mirror.shared.exceptions.auth import InvalidWebhookSignatureException
from catalog_mirror.shared.exceptions.domain import ValidationException
from catalog_mirror.shared.exceptions.sync import SyncAlreadyRunning


router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/woocommerce/{organization_id}", response_model=WebhookAckDTO)
async def woocommerce_webhook(
    organization_id: str,
    request: Request,
    x_wc_webhook_topic: Optional[str] = Header(None),
    x_wc_webhook_signature: Optional[str] = Header(None),
    organizations: OrganizationUseCases = Depends(get_organization_use_cases),
    orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator),
):
    """
    Recibe un aviso de WooCommerce para la organizacion.

    - Sin topic (ping de alta del webhook): se ignora.
    - Firma invalida o sin secreto configurado: 401.
    - `*.deleted`: solo se registra.
    - Resto de topics de productos, clientes y pedidos: sync_specific en background.
    """
    if not x_wc_webhook_topic:
        logger.debug(f"[webhook] {organization_id}: aviso sin topic (ping), ignorado")
        return WebhookAckDTO(status="ignored")

    body = await request.body()
    secret = await organizations.get_webhook_secret(organization_id)
    if not is_valid_signature(body, x_wc_webhook_signature, secret):
        logger.warning(f"[webhook] {organization_id}: firma invalida para {x_wc_webhook_topic}")
        raise InvalidWebhookSignatureException(organization_id)

    parsed = parse_topic(x_wc_webhook_topic)
    if parsed is None:
        logger.info(f"[webhook] {organization_id}: topic no soportado {x_wc_webhook_topic}")
        return WebhookAckDTO(status="ignored", topic=x_wc_webhook_topic)
    entity_type, event = parsed

    try:
        payload = json.loads(body or b"{}")
    except ValueError as e:
        raise ValidationException("El cuerpo del webhook no es JSON valido", "body") from e
    remote_id = extract_remote_id(payload) if isinstance(payload, dict) else None
    if remote_id is None:
        raise ValidationException("El webhook no trae id de entidad", "id")

    if event == "deleted":
        logger.info(
            f"[webhook] {organization_id}: {entity_type.value}#{remote_id} borrado en remoto "
            f"(sin cambios locales)"
        )
        return WebhookAckDTO(
            status="logged",
            topic=x_wc_webhook_topic,
            entity_type=entity_type,
            remote_id=remote_id,
        )

    try:
        run = await orchestrator.start_sync_specific(organization_id, entity_type, [remote_id])
    except SyncAlreadyRunning:
        # La corrida activa o el proximo discovery recogeran el cambio
        logger.warning(
            f"[webhook] {organization_id}: {entity_type.value}#{remote_id} recibido con una "
            f"corrida activa, se difiere"
        )
        return WebhookAckDTO(
            status="busy",
            topic=x_wc_webhook_topic,
            entity_type=entity_type,
            remote_id=remote_id,
        )

    logger.info(f"[webhook] {organization_id}: {x_wc_webhook_topic} #{remote_id} -> corrida {run.run_id}")
    return WebhookAckDTO(
        status="accepted",
        topic=x_wc_webhook_topic,
        entity_type=entity_type,
        remote_id=remote_id,
        run_id=run.run_id,
    )
