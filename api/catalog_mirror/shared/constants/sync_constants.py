"""
Constantes del motor de sincronizacion.
"""
from enum import Enum


class EntityType(str, Enum):
    """Tipos de entidad espejados desde la plataforma remota."""
    PRODUCTS = "products"
    CUSTOMERS = "customers"
    ORDERS = "orders"


class QueueOperation(str, Enum):
    """Operaciones locales que se replican hacia la plataforma remota."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class QueueStatus(str, Enum):
    """Estados de un item de la cola de sincronizacion."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SyncStatusState(str, Enum):
    """Estado persistido en sync_status para un (organizacion, tipo)."""
    IDLE = "idle"
    DISCOVERING = "discovering"
    DISCOVERED = "discovered"
    PULLING = "pulling"
    COMPLETED = "completed"
    PARTIAL = "partial"
    ERROR = "error"


class RunState(str, Enum):
    """Estados de una corrida del orquestador."""
    IDLE = "idle"
    DISCOVERING = "discovering"
    PULLING = "pulling"
    PUSHING = "pushing"
    COMPLETED = "completed"
    FAILED = "failed"


class RunKind(str, Enum):
    """Tipo de corrida."""
    FULL = "full"
    SPECIFIC = "specific"
    DISCOVER = "discover"
    PULL = "pull"


class ConflictType(str, Enum):
    """Tipos de conflicto detectados en el discovery."""
    CREATE_CONFLICT = "create_conflict"
    UPDATE_MISSING = "update_missing"
    CHANGED_BOTH_SIDES = "changed_both_sides"


TERMINAL_RUN_STATES = frozenset({RunState.COMPLETED, RunState.FAILED})

# Porcentajes de progreso por etapa (convencion 10/30/80/100)
PROGRESS_DISCOVERING = 10
PROGRESS_PULLING = 30
PROGRESS_PUSHING = 80
PROGRESS_DONE = 100

DEFAULT_PRIORITY = 0

# Los ids provisionales (entidades creadas localmente, aun sin id remoto) son negativos
PROVISIONAL_ID_START = -1
