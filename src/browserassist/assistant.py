"""
Fachada de browserassist.

Arma catálogo, CacheStore y SessionDriver a partir de un Settings y expone
el flujo completo: descubrir -> (descargar si hace falta) -> capabilities
-> sesión.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, List, Mapping, Optional, Union

from browserassist.application.services.browser_catalog import BrowserCatalog
from browserassist.application.services.browser_handles import LocalBrowserHandle, RemoteBrowserHandle
from browserassist.application.services.cache_store import CacheStore, Clock
from browserassist.config.settings import Settings, get_settings
from browserassist.crosscutting.logging_config import configure_structured_logging, get_logger
from browserassist.domain.models.browser_models import BrowserFamily, BrowserInfo, Release
from browserassist.domain.ports.artifact_fetcher import ArtifactFetcher
from browserassist.domain.ports.session_driver import SessionDriver

log = get_logger("assistant")

Handle = Union[LocalBrowserHandle, RemoteBrowserHandle]


class BrowserAssistant:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        fetcher: Optional[ArtifactFetcher] = None,
        session_driver: Optional[SessionDriver] = None,
        clock: Optional[Clock] = None,
        catalog_kwargs: Optional[Mapping[str, Any]] = None,
        configure_logging: bool = True,
    ) -> None:
        """
        Args:
            settings: Configuración; si es None se lee de env/.env
            configure_logging: Aplica log_level/log_json de settings a structlog.
                               False si la aplicación ya configura su logging.
        """
        settings = settings or get_settings()
        if configure_logging:
            configure_structured_logging(level=settings.log_level, json_format=settings.log_json)
        self._fetcher = fetcher
        self._session_driver = session_driver
        self._clock = clock
        self._catalog_kwargs = dict(catalog_kwargs or {})
        self._configure(settings)

    def _configure(self, settings: Settings) -> None:
        self.settings = settings
        self.catalog = BrowserCatalog(settings, **self._catalog_kwargs)
        self.cache = CacheStore(settings, self.catalog, self._fetcher, clock=self._clock)

    # ---------- configuración ----------
    @property
    def install_dir(self) -> Path:
        return self.settings.install_root

    def set_install_dir(self, install_dir: Optional[Union[str, Path]]) -> None:
        """Los handles ya creados conservan el root anterior."""
        self._configure(self.settings.with_install_dir(Path(install_dir) if install_dir else None))

    def set_farm_credentials(self, username: str, access_key: str) -> None:
        self._configure(self.settings.with_farm_credentials(username, access_key))

    # ---------- navegadores ----------
    def get_local_browser(self, protocol_id: Union[BrowserFamily, str], release: Union[Release, str]) -> LocalBrowserHandle:
        return self.catalog.create(protocol_id, release)

    def get_remote_browser(self, protocol_id: Union[BrowserFamily, str], version: str = "latest") -> RemoteBrowserHandle:
        return self.catalog.create_remote(protocol_id, version)

    def list_browsers(self) -> List[LocalBrowserHandle]:
        return self.catalog.list_all()

    def available_browsers(self) -> List[LocalBrowserHandle]:
        return self.catalog.available()

    def describe_available(self) -> List[BrowserInfo]:
        return self.catalog.describe_available()

    # ---------- descargas ----------
    def should_fetch(
        self,
        protocol_id: Union[BrowserFamily, str],
        release: Union[Release, str],
        max_age_hours: Optional[float] = None,
    ) -> bool:
        return self.cache.should_fetch(protocol_id, release, max_age_hours)

    async def ensure_available(
        self,
        protocol_id: Union[BrowserFamily, str],
        release: Union[Release, str],
        max_age_hours: Optional[float] = None,
    ) -> LocalBrowserHandle:
        """Descarga si hace falta y devuelve un handle nuevo, ya re-probado."""
        await self.cache.ensure_available(protocol_id, release, max_age_hours)
        handle = self.catalog.create(protocol_id, release)
        raw = await handle.probe_version()
        log.info("browser_ready", browser=handle.pretty_name, raw_version=raw, path=handle.executable_path)
        return handle

    # ---------- sesiones ----------
    def _require_session_driver(self) -> SessionDriver:
        if self._session_driver is None:
            from browserassist.infrastructure.browser.selenium_session import SeleniumSessionDriver

            self._session_driver = SeleniumSessionDriver(self.settings)
        return self._session_driver

    async def open_session(self, handle: Handle, extra: Optional[Mapping[str, Any]] = None) -> Any:
        caps = handle.build_capabilities(extra)
        endpoint = handle.endpoint_url if isinstance(handle, RemoteBrowserHandle) else None
        log.info("session_requested", browser=handle.pretty_name, remote=endpoint is not None)
        return await self._require_session_driver().open(caps, endpoint=endpoint)

    async def close_session(self, session: Any) -> None:
        if self._session_driver is None:
            return
        await self._session_driver.close(session)
