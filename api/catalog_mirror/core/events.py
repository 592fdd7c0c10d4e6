"""
Eventos de inicio y cierre de la aplicacion.

Inicio: sink de archivo de loguru, avisos de configuracion y creacion de
tablas. Cierre: aviso de corridas de sync que quedan a medias y cierre
del pool de conexiones.
"""
from typing import Callable, List

from fastapi import FastAPI
from loguru import logger

from catalog_mirror.application.services.sync_run_registry import SyncRunRegistry
from catalog_mirror.core.config import settings
from catalog_mirror.infrastructure.database.session import close_db, init_db

# WooCommerce no acepta per_page por encima de este valor
WOOCOMMERCE_MAX_PAGE_SIZE = 100


def _configure_file_logging() -> None:
    logger.add(
        settings.LOG_FILE,
        rotation="500 MB",
        retention="10 days",
        level=settings.LOG_LEVEL,
    )


def config_warnings() -> List[str]:
    """
    Combinaciones de settings validas pero sospechosas.

    Los rangos individuales ya los valida Settings al cargar.
    """
    warnings = []
    if settings.REMOTE_PAGE_SIZE > WOOCOMMERCE_MAX_PAGE_SIZE:
        warnings.append(
            f"REMOTE_PAGE_SIZE ({settings.REMOTE_PAGE_SIZE}) supera el maximo de "
            f"WooCommerce ({WOOCOMMERCE_MAX_PAGE_SIZE})"
        )
    if settings.SYNC_PULL_BATCH_SIZE > WOOCOMMERCE_MAX_PAGE_SIZE:
        warnings.append(
            f"SYNC_PULL_BATCH_SIZE ({settings.SYNC_PULL_BATCH_SIZE}) supera el maximo de "
            f"WooCommerce ({WOOCOMMERCE_MAX_PAGE_SIZE}); el pull recibira lotes truncados"
        )
    if settings.is_sqlite and not settings.is_development:
        warnings.append("SQLite fuera de development: los claims de sync no son seguros entre procesos")
    return warnings


def _log_urls() -> None:
    host = "localhost" if settings.HOST == "0.0.0.0" else settings.HOST
    base_url = f"http://{host}:{settings.PORT}"
    banner = logger.opt(colors=True)
    banner.info("<bold><green>" + "=" * 80 + "</green></bold>")
    banner.info(f"<cyan>  Swagger UI:  {base_url}/docs</cyan>")
    banner.info(f"<cyan>  Health:      {base_url}/health</cyan>")
    banner.info(f"<cyan>  Sync:        {base_url}/api/v1/organizations/{{org}}/sync</cyan>")
    banner.info(f"<cyan>  Webhooks:    {base_url}/api/v1/webhooks/woocommerce/{{org}}</cyan>")
    banner.info("<bold><green>" + "=" * 80 + "</green></bold>")


def startup_handler(app: FastAPI) -> Callable:
    async def startup() -> None:
        logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")
        _configure_file_logging()

        for warning in config_warnings():
            logger.warning(f"[config] {warning}")

        try:
            await init_db()
        except Exception as e:
            logger.opt(exception=e).error(f"[db] No se pudo inicializar la base de datos: {e}")
            raise
        logger.info("[db] Tablas verificadas")

        logger.success("Aplicacion iniciada correctamente")
        _log_urls()

    return startup


def shutdown_handler(app: FastAPI) -> Callable:
    async def shutdown() -> None:
        active = SyncRunRegistry.active_runs()
        if active:
            logger.warning(f"[sync] Cerrando con {len(active)} corridas activas: {', '.join(active)}")

        await close_db()
        logger.success("Aplicacion cerrada correctamente")

    return shutdown
