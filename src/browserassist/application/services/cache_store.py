"""
Orquestación de descargas con expiración.

Dos fases: chequeo local de validez (barato) + antigüedad del último fetch
exitoso (persistida en <install-root>/localstorage). Sólo se descarga cuando
alguna de las dos lo pide.

Llamadas concurrentes para la MISMA clave no se serializan acá: el llamador
debe hacerlo si le importa. Claves distintas son independientes.
"""
from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Callable, Optional, Union

from browserassist.application.services.browser_catalog import BrowserCatalog
from browserassist.config.settings import Settings
from browserassist.crosscutting.exceptions import ConfigurationError
from browserassist.crosscutting.logging_config import browser_context, get_logger
from browserassist.crosscutting.metrics import fetch_duration_seconds, fetches_total
from browserassist.domain.models.browser_models import BrowserFamily, CacheEntry, Release
from browserassist.domain.ports.artifact_fetcher import ArtifactFetcher
from browserassist.infrastructure.storage.local_storage import LocalStorage

log = get_logger("cache_store")

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


class CacheStore:
    def __init__(
        self,
        settings: Settings,
        catalog: BrowserCatalog,
        fetcher: Optional[ArtifactFetcher] = None,
        *,
        storage: Optional[LocalStorage] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.settings = settings
        self.catalog = catalog
        self.fetcher = fetcher
        self.storage = storage or LocalStorage(settings.cache_dir)
        self._clock = clock or now_ms

    @staticmethod
    def key(family: Union[BrowserFamily, str], release: Union[Release, str]) -> str:
        return f"{getattr(family, 'value', family)}:{getattr(release, 'value', release)}"

    # ---------- entradas ----------
    def get_entry(self, family: Union[BrowserFamily, str], release: Union[Release, str]) -> Optional[CacheEntry]:
        key = self.key(family, release)
        raw = self.storage.get_item(key)
        if raw is None:
            return None
        try:
            return CacheEntry(key=key, last_fetched_at_ms=int(raw.strip()))
        except ValueError:
            log.warning("cache_entry_corrupt", key=key, value=raw[:40])
            return None

    def record_fetch(
        self,
        family: Union[BrowserFamily, str],
        release: Union[Release, str],
        at_ms: Optional[int] = None,
    ) -> CacheEntry:
        entry = CacheEntry(key=self.key(family, release), last_fetched_at_ms=self._clock() if at_ms is None else at_ms)
        self.storage.set_item(entry.key, str(entry.last_fetched_at_ms))
        return entry

    # ---------- decisión ----------
    def should_fetch(
        self,
        family: Union[BrowserFamily, str],
        release: Union[Release, str],
        max_age_hours: Optional[float] = None,
    ) -> bool:
        """
        True si: max_age_hours == 0, no hay entrada, el handle local no es
        válido (o su chequeo falló) o el último fetch es más viejo que la ventana.

        None usa settings.default_expiration_hours (24h por defecto).
        """
        if max_age_hours is None:
            max_age_hours = self.settings.default_expiration_hours
        if max_age_hours == 0:
            return True

        entry = self.get_entry(family, release)
        if entry is None:
            return True

        try:
            valid = self.catalog.create(family, release).is_valid()
        except Exception as e:
            # instalación rota: mejor volver a descargar
            log.warning("validity_eval_failed", key=entry.key, error=str(e))
            return True
        if not valid:
            return True

        return entry.is_expired(self._clock(), max_age_hours)

    async def ensure_available(
        self,
        family: Union[BrowserFamily, str],
        release: Union[Release, str],
        max_age_hours: Optional[float] = None,
    ) -> bool:
        """
        Descarga (family, release) si hace falta.

        Returns:
            True si se descargó, False si la instalación actual alcanza.

        Raises:
            UnknownBrowserError / UnknownReleaseError: pedido inválido
            ConfigurationError: no hay ArtifactFetcher configurado
            FetchError: la descarga falló (no se actualiza la entrada, sin reintento)
        """
        # valida familia y release (UnknownBrowserError / UnknownReleaseError)
        handle = self.catalog.create(family, release)
        family, release = handle.family, handle.release

        with browser_context(family=family.value, release=release.value):
            needed = await asyncio.to_thread(self.should_fetch, family, release, max_age_hours)
            if not needed:
                fetches_total.labels(family=family.value, release=release.value, result="skipped").inc()
                log.debug("fetch_skipped")
                return False

            if self.fetcher is None:
                raise ConfigurationError(
                    "Hace falta descargar pero no hay ArtifactFetcher configurado",
                    details={"family": family.value, "release": release.value},
                )

            destination = self.destination_for(family, release)
            await asyncio.to_thread(destination.mkdir, parents=True, exist_ok=True)

            log.info("fetch_started", destination=str(destination))
            start = time.monotonic()
            try:
                await self.fetcher.fetch(family, release, destination)
            except Exception as e:
                fetches_total.labels(family=family.value, release=release.value, result="error").inc()
                log.warning("fetch_failed", error=str(e), error_type=type(e).__name__)
                raise
            duration = time.monotonic() - start
            fetch_duration_seconds.labels(family=family.value).observe(duration)

            entry = await asyncio.to_thread(self.record_fetch, family, release)
            fetches_total.labels(family=family.value, release=release.value, result="fetched").inc()
            log.info("fetch_completed", duration_s=round(duration, 3), fetched_at_ms=entry.last_fetched_at_ms)
            return True

    def destination_for(self, family: BrowserFamily, release: Release) -> Path:
        return self.settings.install_root / family.value / release.value
