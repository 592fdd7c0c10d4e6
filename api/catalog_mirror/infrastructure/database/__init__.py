"""
Configuración de base de datos.

Importa todos los modelos para que se registren con Base
antes de crear las tablas.
"""
from catalog_mirror.infrastructure.database.models import (
    OrganizationModel,
    ProductModel,
    CustomerModel,
    OrderModel,
    SyncStatusModel,
    SyncQueueModel,
)
