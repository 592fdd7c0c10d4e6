"""
Firma de webhooks de WooCommerce.

WooCommerce envia `X-WC-Webhook-Signature` = base64(HMAC-SHA256(body, secret)).
"""
import base64
import hashlib
import hmac
from typing import Optional, Tuple

from catalog_mirror.shared.constants.sync_constants import EntityType

# Prefijo del topic -> tipo de entidad espejada
TOPIC_ENTITY_TYPES = {
    "product": EntityType.PRODUCTS,
    "customer": EntityType.CUSTOMERS,
    "order": EntityType.ORDERS,
}


def compute_signature(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def is_valid_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """Compara en tiempo constante; sin firma o sin secreto nunca es valida."""
    if not signature or not secret:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature.strip())


def parse_topic(topic: Optional[str]) -> Optional[Tuple[EntityType, str]]:
    """
    Traduce `product.updated` -> (EntityType.PRODUCTS, "updated").

    Returns:
        None si el topic no corresponde a una entidad espejada
    """
    if not topic or "." not in topic:
        return None
    resource, _, event = topic.partition(".")
    entity_type = TOPIC_ENTITY_TYPES.get(resource.strip().lower())
    if entity_type is None:
        return None
    return entity_type, event.strip().lower()
