"""
CLI: sincronizacion WooCommerce <-> espejo local.

Uso recomendado:
  - Ejecutar como job (cron/systemd timer) por organizacion y tipo de entidad.
  - Las corridas largas no pasan por el request/response del API.

Ejecución:
  python scripts/run_sync.py full --org acme --entity products
  python scripts/run_sync.py specific --org acme --entity orders --ids 10 11 12
  python scripts/run_sync.py process-queue --org acme --batch-size 20
  python scripts/run_sync.py discover --org acme --entity customers
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

# Las settings se leen al importar el paquete: cargar .env antes
load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_API_ROOT.parent / ".env", override=False)

from catalog_mirror.application.services.sync_run_registry import SyncRunRegistry
from catalog_mirror.application.use_cases.queue_use_cases import SyncQueueUseCases
from catalog_mirror.application.use_cases.sync_orchestrator import SyncOrchestrator
from catalog_mirror.domain.entities.sync import SyncRun
from catalog_mirror.infrastructure.database.session import close_db, session_scope
from catalog_mirror.shared.constants.sync_constants import EntityType
from catalog_mirror.shared.exceptions.base import AppException


def _log_progress(run: SyncRun) -> None:
    logger.info(f"[sync] {run.state.value} {run.progress}% - {run.current_step}")


async def _full(args: argparse.Namespace) -> None:
    entity_type = EntityType(args.entity)
    SyncRunRegistry.register_callback(args.org, entity_type, _log_progress)
    try:
        async with session_scope() as db:
            run = await SyncOrchestrator(db).full_sync(args.org, entity_type)
    finally:
        SyncRunRegistry.unregister_callback(args.org, entity_type, _log_progress)
    logger.info(f"[sync] Corrida {run.run_id} terminada: {run.summary}")


async def _specific(args: argparse.Namespace) -> None:
    entity_type = EntityType(args.entity)
    async with session_scope() as db:
        run = await SyncOrchestrator(db).sync_specific(
            args.org, entity_type, args.ids, batch_size=args.batch_size
        )
    logger.info(f"[sync] Corrida {run.run_id} terminada: {run.summary}")


async def _process_queue(args: argparse.Namespace) -> None:
    async with session_scope() as db:
        result = await SyncQueueUseCases(db).process_queue(
            args.org,
            batch_size=args.batch_size,
            max_retries=args.max_retries,
            entity_type=args.entity,
        )
    logger.info(
        f"[queue] processed={result.processed} errors={result.errors} skipped={result.skipped}"
    )


async def _discover(args: argparse.Namespace) -> None:
    async with session_scope() as db:
        result = await SyncOrchestrator(db).discover(args.org, EntityType(args.entity))
    logger.info(
        f"[discovery] remoto={result.total_remote} local={result.total_local} "
        f"faltantes={len(result.missing_ids)} cambiados={len(result.changed_ids)} "
        f"conflictos={len(result.conflicts)}"
    )


COMMANDS = {
    "full": _full,
    "specific": _specific,
    "process-queue": _process_queue,
    "discover": _discover,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Sincronizacion WooCommerce <-> espejo local")
    sub = parser.add_subparsers(dest="command", required=True)
    entity_choices = [e.value for e in EntityType]

    full = sub.add_parser("full", help="Discovery -> Pull -> Push")
    full.add_argument("--org", required=True)
    full.add_argument("--entity", required=True, choices=entity_choices)

    specific = sub.add_parser("specific", help="Pull de ids puntuales")
    specific.add_argument("--org", required=True)
    specific.add_argument("--entity", required=True, choices=entity_choices)
    specific.add_argument("--ids", required=True, nargs="+", type=int)
    specific.add_argument("--batch-size", type=int, default=None)

    queue = sub.add_parser("process-queue", help="Procesa un lote de la cola")
    queue.add_argument("--org", required=True)
    queue.add_argument("--entity", choices=entity_choices, default=None)
    queue.add_argument("--batch-size", type=int, default=None)
    queue.add_argument("--max-retries", type=int, default=None)

    discover = sub.add_parser("discover", help="Solo discovery (no modifica el espejo)")
    discover.add_argument("--org", required=True)
    discover.add_argument("--entity", required=True, choices=entity_choices)

    return parser


async def _run(args: argparse.Namespace) -> None:
    try:
        await COMMANDS[args.command](args)
    finally:
        await close_db()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        asyncio.run(_run(args))
    except AppException as e:
        logger.error(f"[{args.command}] {e.to_dict()}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
