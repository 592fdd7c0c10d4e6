"""
Modelos de base de datos (ORM).

Tablas espejo (wc_products, wc_customers, wc_orders): copia local de las
entidades remotas, una fila por (organization_id, remote_id).

Tablas del motor (sync_status, sync_queue): las escribe exclusivamente
el motor de sincronizacion.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Index,
)
from sqlalchemy.sql import func

from catalog_mirror.infrastructure.database.session import Base
from catalog_mirror.shared.constants.sync_constants import (
    DEFAULT_PRIORITY,
    QueueStatus,
    SyncStatusState,
)
from catalog_mirror.shared.utils.datetime_utils import utc_now


def _to_decimal(value: Any) -> Optional[Decimal]:
    """WooCommerce envia precios como string; vacio o invalido equivale a None."""
    if value in (None, ""):
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def _to_int(value: Any) -> Optional[int]:
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


class OrganizationModel(Base):
    """
    Organizacion (tenant).

    `settings` guarda la integracion remota:
    woocommerce_url, woocommerce_consumer_key, woocommerce_consumer_secret, webhook_secret.
    """

    __tablename__ = "organizations"

    id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    settings = Column(JSON, nullable=True, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Organization(id={self.id}, name={self.name})>"


class MirrorMixin:
    """
    Columnas comunes de las tablas espejo.

    remote_id:
        id de la entidad en WooCommerce. Las filas creadas localmente y aun
        no enviadas llevan un id provisional negativo.
    payload:
        cuerpo completo con la forma remota.
    last_modified:
        fecha de modificacion remota (UTC), usada por el discovery.
    """

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    remote_id = Column(Integer, nullable=False, index=True)
    payload = Column(JSON, nullable=False, default=dict)
    last_modified = Column(DateTime(timezone=True), nullable=True)
    synced_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    @classmethod
    def columns_from_payload(cls, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Columnas desnormalizadas derivadas del payload remoto."""
        return {}


class ProductModel(MirrorMixin, Base):
    """Producto espejado (incluye variaciones embebidas en el payload)."""

    __tablename__ = "wc_products"
    __table_args__ = (
        UniqueConstraint("organization_id", "remote_id", name="uq_wc_products_org_remote"),
    )

    name = Column(String(255), nullable=True, index=True)
    sku = Column(String(128), nullable=True, index=True)
    type = Column(String(32), nullable=True)
    status = Column(String(32), nullable=True)
    price = Column(Numeric(12, 2), nullable=True)
    stock_quantity = Column(Integer, nullable=True)

    @classmethod
    def columns_from_payload(cls, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "name": payload.get("name"),
            "sku": payload.get("sku") or None,
            "type": payload.get("type"),
            "status": payload.get("status"),
            "price": _to_decimal(payload.get("price")),
            "stock_quantity": _to_int(payload.get("stock_quantity")),
        }

    def __repr__(self):
        return f"<Product(id={self.id}, remote_id={self.remote_id}, sku={self.sku})>"


class CustomerModel(MirrorMixin, Base):
    """Cliente espejado."""

    __tablename__ = "wc_customers"
    __table_args__ = (
        UniqueConstraint("organization_id", "remote_id", name="uq_wc_customers_org_remote"),
    )

    email = Column(String(255), nullable=True, index=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)

    @classmethod
    def columns_from_payload(cls, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "email": payload.get("email"),
            "first_name": payload.get("first_name"),
            "last_name": payload.get("last_name"),
        }

    def __repr__(self):
        return f"<Customer(id={self.id}, remote_id={self.remote_id}, email={self.email})>"


class OrderModel(MirrorMixin, Base):
    """Pedido espejado."""

    __tablename__ = "wc_orders"
    __table_args__ = (
        UniqueConstraint("organization_id", "remote_id", name="uq_wc_orders_org_remote"),
    )

    number = Column(String(64), nullable=True)
    status = Column(String(32), nullable=True, index=True)
    total = Column(Numeric(12, 2), nullable=True)
    customer_id = Column(Integer, nullable=True, index=True)

    @classmethod
    def columns_from_payload(cls, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "number": str(payload["number"]) if payload.get("number") is not None else None,
            "status": payload.get("status"),
            "total": _to_decimal(payload.get("total")),
            "customer_id": _to_int(payload.get("customer_id")),
        }

    def __repr__(self):
        return f"<Order(id={self.id}, remote_id={self.remote_id}, status={self.status})>"


class SyncStatusModel(Base):
    """
    Estado de sincronizacion por (organizacion, tipo de entidad).

    `is_syncing` actua como claim cooperativo: se toma con un UPDATE
    condicional y se libera al terminar la corrida.
    """

    __tablename__ = "sync_status"
    __table_args__ = (
        UniqueConstraint("organization_id", "entity_type", name="uq_sync_status_scope"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(32), nullable=False)
    is_syncing = Column(Boolean, nullable=False, default=False)
    status = Column(String(32), nullable=False, default=SyncStatusState.IDLE.value)
    sync_meta = Column("metadata", JSON, nullable=True)  # Ultimo discovery o resumen del pull
    total_items = Column(Integer, nullable=False, default=0)
    processed_items = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    last_discover_at = Column(DateTime(timezone=True), nullable=True)
    last_sync_time = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return (
            f"<SyncStatus(org={self.organization_id}, entity={self.entity_type}, "
            f"status={self.status}, syncing={self.is_syncing})>"
        )


class SyncQueueModel(Base):
    """
    Item de la cola de cambios locales hacia la plataforma remota.

    Orden de proceso: priority desc, created_at asc, id asc
    (solo items con scheduled_at <= ahora).
    """

    __tablename__ = "sync_queue"
    __table_args__ = (
        Index("ix_sync_queue_due", "organization_id", "status", "scheduled_at"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String(64), nullable=False, index=True)
    entity_type = Column(String(32), nullable=False, index=True)
    entity_id = Column(Integer, nullable=False)
    operation = Column(String(16), nullable=False)
    data = Column(JSON, nullable=True)  # Snapshot al momento de encolar
    status = Column(String(16), nullable=False, default=QueueStatus.PENDING.value)
    attempts = Column(Integer, nullable=False, default=0)
    max_attempts = Column(Integer, nullable=False, default=3)
    priority = Column(Integer, nullable=False, default=DEFAULT_PRIORITY)
    scheduled_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    last_error = Column(Text, nullable=True)
    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)
    updated_at = Column(DateTime(timezone=True), nullable=True, default=utc_now, onupdate=utc_now)

    def __repr__(self):
        return (
            f"<SyncQueueItem(id={self.id}, {self.operation} {self.entity_type}"
            f"#{self.entity_id}, status={self.status})>"
        )
