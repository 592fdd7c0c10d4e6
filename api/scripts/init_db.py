"""
Script para inicializar la base de datos.

Crea las tablas y, opcionalmente, registra la integracion WooCommerce
de una organizacion:

  python scripts/init_db.py
  python scripts/init_db.py --org acme --url tienda.example.com --key ck_x --secret cs_y
"""
import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))
load_dotenv(_API_ROOT / ".env", override=False)

from catalog_mirror.infrastructure.database.session import close_db, init_db, session_scope
from catalog_mirror.infrastructure.repositories.organization_repository import OrganizationRepository


async def main(args: argparse.Namespace) -> None:
    """Función principal para inicializar la base de datos."""
    logger.info("Inicializando base de datos...")

    try:
        await init_db()
        logger.success("Base de datos inicializada correctamente")

        if args.org:
            async with session_scope() as db:
                await OrganizationRepository(db).set_integration(
                    args.org,
                    url=args.url,
                    consumer_key=args.key,
                    consumer_secret=args.secret,
                    webhook_secret=args.webhook_secret,
                )
            logger.success(f"Integracion registrada para {args.org}")
    except Exception as e:
        logger.error(f"Error al inicializar base de datos: {e}")
        raise
    finally:
        await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--org", help="Id de la organizacion a registrar")
    parser.add_argument("--url")
    parser.add_argument("--key")
    parser.add_argument("--secret")
    parser.add_argument("--webhook-secret", default=None)
    parsed = parser.parse_args()
    if parsed.org and not (parsed.url and parsed.key and parsed.secret):
        parser.error("--org requiere --url, --key y --secret")
    asyncio.run(main(parsed))
