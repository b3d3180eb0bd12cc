from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol, runtime_checkable

from browserassist.crosscutting.exceptions import BrowserAssistError
from browserassist.domain.models.browser_models import BrowserFamily, Release

# =========================
# Excepciones del puerto
# =========================

class FetchError(BrowserAssistError):
    """
    Error base al descargar/extraer un navegador.

    Atributos:
        retryable (bool): True si un reintento posterior podría resolverlo.
        family (str|None): Familia que se intentaba descargar.
        release (str|None): Release que se intentaba descargar.
    """

    error_code = "FETCH_ERROR"
    retryable = True

    def __init__(
        self,
        message: str,
        *,
        family: Optional[str] = None,
        release: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            details={k: v for k, v in (("family", family), ("release", release)) if v},
            cause=cause,
        )
        self.family = family
        self.release = release


class NetworkError(FetchError):
    """Falla de red durante la descarga."""
    error_code = "FETCH_NETWORK_ERROR"
    retryable = True


class ExtractionError(FetchError):
    """El archivo descargado no se pudo desempaquetar."""
    error_code = "FETCH_EXTRACTION_ERROR"
    retryable = False


class UnsupportedPlatformError(FetchError):
    """No hay artefacto para esta plataforma/release."""
    error_code = "FETCH_UNSUPPORTED_PLATFORM"
    retryable = False


# =========================
# Puerto: ArtifactFetcher
# =========================

@runtime_checkable
class ArtifactFetcher(Protocol):
    """
    Descarga y desempaqueta el navegador de una familia/release.

    Los adaptadores concretos (HTTP, mirror interno, etc.) viven fuera de la
    librería; CacheStore sólo decide cuándo llamarlos.
    """

    async def fetch(self, family: BrowserFamily, release: Release, destination_dir: Path) -> None:
        """
        Deja el navegador instalado bajo destination_dir.

        Raises:
            NetworkError: Si falla la red
            ExtractionError: Si el archivo está corrupto o no se puede extraer
            UnsupportedPlatformError: Si no hay build para esta plataforma
        """
        ...
