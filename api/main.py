"""
Aplicacion FastAPI del espejo de catalogos.

Rutas bajo /api/v1 (sync, cola, espejo, integraciones, webhooks) y /health.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalog_mirror.api.middlewares.error_handler import ErrorHandlerMiddleware
from catalog_mirror.api.v1.router import api_router
from catalog_mirror.core.config import get_cors_origins, settings
from catalog_mirror.core.events import shutdown_handler, startup_handler
from catalog_mirror.shared.exceptions.base import AppException


def _add_middlewares(application: FastAPI) -> None:
    application.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(settings.CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(ErrorHandlerMiddleware)


def _register_exception_handlers(application: FastAPI) -> None:
    @application.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _register_routes(application: FastAPI) -> None:
    application.include_router(api_router, prefix="/api")

    @application.get("/health", tags=["Health"])
    async def health_check():
        return {
            "status": "healthy",
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
        }


def create_application() -> FastAPI:
    """Crea la app y registra middlewares, handlers, rutas y eventos."""
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Espejo local y sincronizacion incremental de catalogos WooCommerce",
    )

    _add_middlewares(application)
    _register_exception_handlers(application)
    _register_routes(application)

    application.add_event_handler("startup", startup_handler(application))
    application.add_event_handler("shutdown", shutdown_handler(application))

    return application


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
