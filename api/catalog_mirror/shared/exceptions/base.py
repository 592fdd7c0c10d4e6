"""
Raiz de la jerarquia de excepciones de la aplicacion.
"""
from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Error con codigo HTTP, codigo de error estable y detalles.

    El handler de main.py la traduce a `{error, message, details}`; los
    scripts la registran con el mismo cuerpo.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.error_code, "message": self.message, "details": self.details}
