"""
Router principal de la API v1.
Agrupa todos los endpoints de la version 1.
"""
from fastapi import APIRouter

from catalog_mirror.api.v1.endpoints import mirror, organizations, sync, webhooks


# Router principal de la API v1
api_router = APIRouter(prefix="/v1")

# Incluir routers de endpoints especificos
api_router.include_router(organizations.router)
api_router.include_router(sync.router)
api_router.include_router(mirror.router)
api_router.include_router(webhooks.router)
