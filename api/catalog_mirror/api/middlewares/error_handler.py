"""
Ultima red para errores que ningun handler tradujo.

Las AppException las responde el handler de main.py; aqui llega lo
inesperado (bugs, fallos de driver) y sale como 500 con el mismo cuerpo.
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from catalog_mirror.shared.exceptions.base import AppException

_INTERNAL_ERROR = AppException(
    "Ha ocurrido un error interno del servidor",
    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    error_code="INTERNAL_SERVER_ERROR",
)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as exc:
            # loguru interpreta llaves en el mensaje
            safe = str(exc).replace("{", "{{").replace("}", "}}")
            logger.opt(exception=exc).error(
                f"[api] {request.method} {request.url.path} fallo sin manejar: {safe}"
            )
            return JSONResponse(
                status_code=_INTERNAL_ERROR.status_code,
                content=_INTERNAL_ERROR.to_dict(),
            )
