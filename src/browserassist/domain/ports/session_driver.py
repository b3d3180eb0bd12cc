from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable

from browserassist.crosscutting.exceptions import BrowserAssistError
from browserassist.domain.models.browser_models import CapabilityBag


class SessionError(BrowserAssistError):
    """No se pudo abrir la sesión de automatización."""
    error_code = "SESSION_ERROR"
    retryable = True


@runtime_checkable
class SessionDriver(Protocol):
    """
    Convierte un CapabilityBag en una sesión WebDriver viva.

    close() debe tolerar sesiones ya cerradas o nunca abiertas (None).
    """

    async def open(self, capabilities: CapabilityBag, *, endpoint: Optional[str] = None) -> Any:
        """
        Abre una sesión local (endpoint None) o remota.

        Raises:
            SessionError: Si el driver no pudo iniciarse
        """
        ...

    async def close(self, session: Any) -> None:
        ...
