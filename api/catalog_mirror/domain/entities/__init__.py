"""
Entidades del dominio.
"""
from catalog_mirror.domain.entities.sync import (
    RemoteIndexEntry,
    PendingLocalChange,
    DiscoveryResult,
    PullResult,
    QueueProcessResult,
    SyncRun,
    compute_discovery,
)

__all__ = [
    "RemoteIndexEntry",
    "PendingLocalChange",
    "DiscoveryResult",
    "PullResult",
    "QueueProcessResult",
    "SyncRun",
    "compute_discovery",
]
