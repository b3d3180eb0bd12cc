from __future__ import annotations

from typing import List, Optional, Tuple, Union

from browserassist.config.settings import Settings
from browserassist.crosscutting.exceptions import UnknownBrowserError
from browserassist.crosscutting.logging_config import get_logger
from browserassist.domain.models.browser_models import BrowserFamily, BrowserInfo, Release
from browserassist.application.services.browser_handles import (
    DriverVersionLookup,
    LocalBrowserHandle,
    RemoteBrowserHandle,
)
from browserassist.infrastructure.browser.families import FAMILIES, FamilyStrategy, Which
from browserassist.infrastructure.browser.path_resolver import PathResolver
from browserassist.infrastructure.browser.version_probe import VersionProbe

log = get_logger("browser_catalog")


class BrowserCatalog:
    """
    Fábrica de handles sobre el conjunto cerrado de familias.

    Cada handle creado es independiente y no tiene efectos hasta que se le
    pide is_valid() o build_capabilities(). Los handles capturan el root de
    instalación y los overrides vigentes al crearse.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        probe: Optional[VersionProbe] = None,
        driver_version_lookup: Optional[DriverVersionLookup] = None,
        platform: Optional[str] = None,
        which: Optional[Which] = None,
    ) -> None:
        self.settings = settings
        self.probe = probe or VersionProbe(timeout_s=settings.version_probe_timeout_s)
        self._driver_version_lookup = driver_version_lookup
        self._platform = platform
        self._which = which

    # ---------- familias ----------
    @staticmethod
    def families() -> List[BrowserFamily]:
        return list(FAMILIES)

    @staticmethod
    def parse_family(protocol_id: Union[BrowserFamily, str]) -> BrowserFamily:
        try:
            return BrowserFamily(protocol_id)
        except ValueError:
            raise UnknownBrowserError(
                f"Navegador desconocido: '{protocol_id}'",
                details={"protocol_id": str(protocol_id), "known": [f.value for f in BrowserFamily]},
            ) from None

    def strategy_for(self, protocol_id: Union[BrowserFamily, str]) -> FamilyStrategy:
        return FAMILIES[self.parse_family(protocol_id)]

    def _driver_version(self, driver_name: str) -> Optional[str]:
        """Driver descargado en <install-root>/<driver>/ (o en el root) antes que el del PATH."""
        root = self.settings.install_root
        return self.probe.driver_version(driver_name, search_dirs=(root / driver_name, root))

    def supported_releases(self, protocol_id: Union[BrowserFamily, str]) -> Tuple[Release, ...]:
        return self.strategy_for(protocol_id).local_releases

    # ---------- handles ----------
    def resolver(self) -> PathResolver:
        """PathResolver con el root y overrides actuales."""
        return PathResolver(
            self.settings.install_root,
            platform=self._platform,
            overrides=self.settings.path_overrides,
            which=self._which,
        )

    def create(self, protocol_id: Union[BrowserFamily, str], release: Union[Release, str]) -> LocalBrowserHandle:
        """
        Raises:
            UnknownBrowserError: protocol id fuera del conjunto conocido
            UnknownReleaseError: release no soportado localmente por la familia
        """
        strategy = self.strategy_for(protocol_id)
        return LocalBrowserHandle(
            strategy,
            release,
            resolver=self.resolver(),
            probe=self.probe,
            driver_version_lookup=self._driver_version_lookup or self._driver_version,
        )

    def create_remote(self, protocol_id: Union[BrowserFamily, str], version: str = "latest") -> RemoteBrowserHandle:
        """
        Raises:
            UnknownBrowserError: protocol id fuera del conjunto conocido
            CredentialsMissingError: faltan usuario/access key de la granja
        """
        strategy = self.strategy_for(protocol_id)
        credentials = self.settings.farm_credentials()
        return RemoteBrowserHandle(
            strategy,
            version,
            credentials,
            hub_url=self.settings.farm_hub_url,
        )

    def list_all(self) -> List[LocalBrowserHandle]:
        """Producto cruzado familia × release local."""
        handles: List[LocalBrowserHandle] = []
        for family, strategy in FAMILIES.items():
            for release in strategy.local_releases:
                handles.append(self.create(family, release))
        return handles

    def available(self) -> List[LocalBrowserHandle]:
        """Handles válidos; una familia rota no corta la enumeración."""
        found: List[LocalBrowserHandle] = []
        for handle in self.list_all():
            if handle.is_valid():
                found.append(handle)
        log.info("browsers_discovered", count=len(found), browsers=[repr(h) for h in found])
        return found

    def describe_available(self) -> List[BrowserInfo]:
        return [h.describe() for h in self.available()]
