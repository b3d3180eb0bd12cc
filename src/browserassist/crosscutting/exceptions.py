"""Excepciones centralizadas de browserassist."""
from __future__ import annotations

from typing import Optional, Dict, Any


class BrowserAssistError(Exception):
    """
    Excepción base de la librería.

    Atributos:
        error_code: Código de error estable para el llamador
        retryable: Si reintentar la operación tiene sentido
        message: Mensaje legible
        details: Información adicional opcional
    """

    error_code: str = "BROWSERASSIST_ERROR"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convierte la excepción a un diccionario serializable."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.error_code,
                "message": self.message,
                "retryable": self.retryable,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result


class ConfigurationError(BrowserAssistError):
    """Contrato de familia incompleto o configuración inválida (error de programación)."""
    error_code = "CONFIGURATION_ERROR"


# Errores de entrada del llamador

class BrowserRequestError(BrowserAssistError):
    """Base para pedidos inválidos al catálogo."""
    error_code = "BROWSER_REQUEST_ERROR"


class UnknownBrowserError(BrowserRequestError):
    """protocol id desconocido."""
    error_code = "UNKNOWN_BROWSER"


class UnknownReleaseError(BrowserRequestError):
    """Release fuera del conjunto soportado por la familia."""
    error_code = "UNKNOWN_RELEASE"


# Granja remota

class CredentialsMissingError(BrowserAssistError):
    """Faltan usuario o access key de la granja."""
    error_code = "CREDENTIALS_MISSING"
