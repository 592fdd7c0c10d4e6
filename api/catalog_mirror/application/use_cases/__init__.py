"""
Casos de uso de la aplicacion.
"""
from .discovery_use_cases import DiscoveryUseCases
from .pull_use_cases import PullUseCases
from .queue_use_cases import SyncQueueUseCases
from .sync_orchestrator import SyncOrchestrator
from .mirror_use_cases import MirrorUseCases
from .organization_use_cases import OrganizationUseCases

__all__ = [
    "DiscoveryUseCases",
    "PullUseCases",
    "SyncQueueUseCases",
    "SyncOrchestrator",
    "MirrorUseCases",
    "OrganizationUseCases",
]
