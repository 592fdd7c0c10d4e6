"""
Configuracion central de la aplicacion.

Todo se lee de variables de entorno (o `.env`). Grupos:
- Aplicacion, servidor, base de datos, CORS y logging
- REMOTE_*: cliente HTTP de WooCommerce (timeouts, paginacion, reintentos)
- SYNC_*: motor de sincronizacion (lotes, intentos, prioridades, claims)
"""
import json
from typing import Any, Dict, List

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuracion de la aplicacion con valores por defecto para desarrollo local."""

    APP_NAME: str = Field(default="Catalog Mirror Sync")
    APP_VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=False)
    ENVIRONMENT: str = Field(default="production")

    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # Base de datos: DATABASE_URL tiene prioridad sobre los componentes
    DATABASE_HOST: str = Field(default="localhost")
    DATABASE_PORT: int = Field(default=5432)
    DATABASE_USER: str = Field(default="mirror_user")
    DATABASE_PASSWORD: str = Field(default="mirror_pass")
    DATABASE_NAME: str = Field(default="catalog_mirror")
    DATABASE_URL: str = Field(default="")
    DB_POOL_SIZE: int = Field(default=5)
    DB_MAX_OVERFLOW: int = Field(default=10)

    # "*", lista JSON o valores separados por coma
    CORS_ORIGINS: str = Field(default="*")

    LOG_LEVEL: str = Field(default="INFO")
    LOG_FILE: str = Field(default="logs/app.log")

    # Cliente remoto (WooCommerce REST v3)
    REMOTE_TIMEOUT_S: int = Field(default=30, description="Timeout por request HTTP")
    REMOTE_MAX_RETRIES: int = Field(default=2, description="Reintentos cortos ante 429/5xx/timeout")
    REMOTE_PAGE_SIZE: int = Field(default=100, description="per_page del listado (maximo WooCommerce: 100)")
    REMOTE_PAGE_DELAY_S: float = Field(default=0.1)
    REMOTE_USER_AGENT: str = Field(default="CatalogMirror-Sync/1.0")

    # Motor de sincronizacion
    SYNC_PULL_BATCH_SIZE: int = Field(default=25, description="Ids por request del pull")
    SYNC_PULL_CHUNK_DELAY_S: float = Field(default=0.2)
    SYNC_QUEUE_BATCH_SIZE: int = Field(default=10, description="Items de la cola por lote")
    SYNC_MAX_ATTEMPTS: int = Field(default=3, description="Intentos por item antes de failed")
    SYNC_DELETE_PRIORITY: int = Field(default=10)
    SYNC_STALE_AFTER_MINUTES: int = Field(default=30, description="Claim de sync_status considerado abandonado")
    SYNC_FAIL_FAST_ON_REJECTED: bool = Field(default=False, description="4xx remoto -> failed sin reintento")
    SYNC_MAX_PUSH_ROUNDS: int = Field(default=50, description="Tope de lotes de push por corrida")

    @field_validator(
        "REMOTE_PAGE_SIZE",
        "SYNC_PULL_BATCH_SIZE",
        "SYNC_QUEUE_BATCH_SIZE",
        "SYNC_MAX_ATTEMPTS",
        "SYNC_MAX_PUSH_ROUNDS",
    )
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("debe ser >= 1")
        return value

    @computed_field
    @property
    def effective_database_url(self) -> str:
        """URL async de la base (DATABASE_URL o construida desde los componentes)."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.DATABASE_USER}:{self.DATABASE_PASSWORD}"
            f"@{self.DATABASE_HOST}:{self.DATABASE_PORT}/{self.DATABASE_NAME}"
        )

    @computed_field
    @property
    def migration_database_url(self) -> str:
        """URL con driver sincrono para Alembic (psycopg / pysqlite)."""
        return (
            self.effective_database_url
            .replace("+asyncpg", "+psycopg")
            .replace("+aiosqlite", "")
        )

    @property
    def is_sqlite(self) -> bool:
        return self.effective_database_url.startswith("sqlite")

    @computed_field
    @property
    def is_development(self) -> bool:
        return self.ENVIRONMENT.lower() == "development"

    def remote_client_options(self) -> Dict[str, Any]:
        """Parametros del WooCommerceClient derivados de REMOTE_*."""
        return {
            "timeout_s": self.REMOTE_TIMEOUT_S,
            "max_retries": self.REMOTE_MAX_RETRIES,
            "page_size": self.REMOTE_PAGE_SIZE,
            "page_delay_s": self.REMOTE_PAGE_DELAY_S,
            "user_agent": self.REMOTE_USER_AGENT,
        }

    class Config:
        """Configuracion de Pydantic."""
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


def get_cors_origins(cors_string: str) -> List[str]:
    """
    Parsea CORS_ORIGINS.

    Acepta "*", una lista JSON o valores separados por coma.
    """
    if cors_string.strip() == "*":
        return ["*"]
    try:
        origins = json.loads(cors_string)
    except json.JSONDecodeError:
        origins = cors_string.split(",")
    return [str(origin).strip() for origin in origins if str(origin).strip()]


settings = Settings()
