from __future__ import annotations

import shutil
from pathlib import Path
from typing import Mapping, Optional, Union

from browserassist.crosscutting.logging_config import get_logger
from browserassist.domain.models.browser_models import BrowserFamily, Release
from browserassist.infrastructure.browser.families import FAMILIES, Which
from browserassist.infrastructure.browser.platform_utils import get_platform

log = get_logger("path_resolver")


class PathResolver:
    """
    Encuentra el ejecutable de (familia, release) en la plataforma actual.

    Orden:
      0) override explícito 'family:release' (se devuelve tal cual)
      1) directorio gestionado <root>/<family>/<release>/... si existe en disco
      2) ubicaciones conocidas del sistema operativo / PATH
    resolve() nunca lanza: cualquier falla devuelve None.
    """

    def __init__(
        self,
        install_root: Union[str, Path],
        *,
        platform: Optional[str] = None,
        overrides: Optional[Mapping[str, str]] = None,
        which: Optional[Which] = None,
    ) -> None:
        self.install_root = Path(install_root).expanduser()
        self.platform = platform or get_platform()
        self._overrides = dict(overrides or {})
        self._which: Which = which or shutil.which

    def override_for(self, family: BrowserFamily, release: Release) -> Optional[str]:
        return self._overrides.get(f"{family.value}:{release.value}")

    def managed_path(self, family: BrowserFamily, release: Release) -> Optional[Path]:
        """Ruta esperada dentro del directorio gestionado (exista o no)."""
        strategy = FAMILIES.get(family)
        if strategy is None or strategy.managed_path is None or not strategy.supports_release(release):
            return None
        return strategy.managed_path(self.install_root, release, self.platform)

    def resolve(self, family: BrowserFamily, release: Release) -> Optional[str]:
        try:
            return self._resolve(family, release)
        except Exception as e:
            log.debug("browser_resolve_failed", family=str(family), release=str(release), error=str(e), exc_info=True)
            return None

    # ------------------------------ helpers ------------------------------

    def _resolve(self, family: BrowserFamily, release: Release) -> Optional[str]:
        family = BrowserFamily(family)
        release = Release(release)

        override = self.override_for(family, release)
        if override:
            log.debug("browser_resolved", family=family.value, release=release.value, source="override", path=override)
            return override

        strategy = FAMILIES.get(family)
        if strategy is None or not strategy.supports_release(release):
            return None

        managed = self.managed_path(family, release)
        if managed is not None and managed.exists():
            log.debug("browser_resolved", family=family.value, release=release.value, source="managed", path=str(managed))
            return str(managed)

        if strategy.system_path is None:
            return None
        found = strategy.system_path(release, self.platform, self._which)
        if found:
            log.debug("browser_resolved", family=family.value, release=release.value, source="system", path=found)
        return found or None
