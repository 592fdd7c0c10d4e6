"""
Interfaz de un recurso del catalogo remoto.
Define el contrato que cumple cada tipo de entidad (productos, clientes, pedidos).
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from catalog_mirror.domain.entities.sync import RemoteIndexEntry
from catalog_mirror.shared.constants.sync_constants import EntityType


class IRemoteResource(ABC):
    """
    Capacidades remotas de un tipo de entidad.

    Las implementaciones son sincronas (I/O bloqueante); el motor las
    ejecuta en un thread via `asyncio.to_thread`.
    """

    entity_type: EntityType

    @abstractmethod
    def fetch_index(self) -> List[RemoteIndexEntry]:
        """
        Obtiene el indice completo (id, fecha de modificacion), paginado.

        Returns:
            List[RemoteIndexEntry]: Indice remoto
        """
        pass

    @abstractmethod
    def fetch_batch(self, ids: Sequence[int]) -> List[Dict[str, Any]]:
        """
        Obtiene los cuerpos completos de un lote de ids en una sola llamada.

        Args:
            ids: Ids remotos del lote

        Returns:
            List[Dict[str, Any]]: Recursos encontrados (puede faltar alguno)
        """
        pass

    @abstractmethod
    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Crea el recurso remoto y retorna el cuerpo creado (con id)."""
        pass

    @abstractmethod
    def update(self, remote_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Actualiza el recurso remoto y retorna el cuerpo actualizado."""
        pass

    @abstractmethod
    def delete(self, remote_id: int) -> Optional[Dict[str, Any]]:
        """Elimina el recurso remoto. Un recurso ya inexistente no es error."""
        pass
