"""
Cliente de la plataforma remota (WooCommerce REST v3).

Este paquete no contiene logica de sincronizacion: solo request/response
con autenticacion, paginacion, reintentos acotados y un recurso tipado
por tipo de entidad (productos, clientes, pedidos).

Objetivos de diseño:
- Timeouts acotados en cada llamada.
- Errores tipados: RemoteUnavailable (red/5xx/429/auth) vs RemoteRejected (4xx).
- El tipo de entidad se resuelve una sola vez (`build_remote_resource`).
"""
