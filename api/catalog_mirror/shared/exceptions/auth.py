"""
Errores de autenticacion de llamadas entrantes (webhooks de WooCommerce).
"""
from typing import Any, Dict, Optional

from catalog_mirror.shared.exceptions.base import AppException


class AuthException(AppException):

    def __init__(
        self,
        message: str,
        error_code: str = "AUTH_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, status_code=401, error_code=error_code, details=details)


class InvalidWebhookSignatureException(AuthException):
    """X-WC-Webhook-Signature ausente, o no coincide con el secreto de la organizacion."""

    def __init__(self, organization_id: str):
        super().__init__(
            message="Firma de webhook invalida",
            error_code="INVALID_WEBHOOK_SIGNATURE",
            details={"organization_id": organization_id},
        )
