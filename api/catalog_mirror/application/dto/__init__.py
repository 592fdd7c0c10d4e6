"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .sync_dto import (
    PullRequestDTO,
    SpecificSyncRequestDTO,
    QueueProcessRequestDTO,
    QueueAddRequestDTO,
    IntegrationUpdateDTO,
    IntegrationResponseDTO,
    MirrorEntityChangeDTO,
    MirrorEntityDTO,
    DiscoveryResultDTO,
    PullResultDTO,
    QueueProcessResultDTO,
    SyncQueueItemDTO,
    QueueStatusDTO,
    SyncStatusDTO,
    SyncRunDTO,
    WebhookAckDTO,
)

__all__ = [
    "PullRequestDTO",
    "SpecificSyncRequestDTO",
    "QueueProcessRequestDTO",
    "QueueAddRequestDTO",
    "IntegrationUpdateDTO",
    "IntegrationResponseDTO",
    "MirrorEntityChangeDTO",
    "MirrorEntityDTO",
    "DiscoveryResultDTO",
    "PullResultDTO",
    "QueueProcessResultDTO",
    "SyncQueueItemDTO",
    "QueueStatusDTO",
    "SyncStatusDTO",
    "SyncRunDTO",
    "WebhookAckDTO",
]
