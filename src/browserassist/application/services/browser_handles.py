from __future__ import annotations

import asyncio
import os
from typing import Any, Callable, Mapping, Optional, Union
from urllib.parse import quote, urlsplit, urlunsplit

from browserassist.crosscutting.exceptions import ConfigurationError, UnknownReleaseError
from browserassist.crosscutting.logging_config import get_logger
from browserassist.crosscutting.metrics import validity_checks_total
from browserassist.domain.models.browser_models import (
    BrowserFamily,
    BrowserInfo,
    CapabilityBag,
    FarmCredentials,
    Release,
)
from browserassist.infrastructure.browser.families import FamilyStrategy
from browserassist.infrastructure.browser.path_resolver import PathResolver
from browserassist.infrastructure.browser.version_probe import VersionProbe

log = get_logger("browser_handles")

DriverVersionLookup = Callable[[str], Optional[str]]

_UNSET: Any = object()


# =========================
# Navegador local
# =========================

class LocalBrowserHandle:
    """
    Navegador instalado en esta máquina para (familia, release).

    Cachea la ruta y la versión cruda durante toda su vida: para re-probar
    hay que construir un handle nuevo. El root de instalación y los overrides
    quedan fijados al construirlo (vienen dentro del PathResolver).
    """

    def __init__(
        self,
        strategy: FamilyStrategy,
        release: Union[Release, str],
        *,
        resolver: PathResolver,
        probe: VersionProbe,
        driver_version_lookup: Optional[DriverVersionLookup] = None,
    ) -> None:
        try:
            release = Release(release)
        except ValueError:
            raise UnknownReleaseError(
                f"Release desconocido '{release}' para {strategy.family.value}",
                details={"family": strategy.family.value, "release": str(release)},
            ) from None
        if not strategy.supports_release(release):
            raise UnknownReleaseError(
                f"{strategy.descriptor.display_name} no soporta el release local '{release.value}'",
                details={
                    "family": strategy.family.value,
                    "release": release.value,
                    "supported": [r.value for r in strategy.local_releases],
                },
            )
        if not strategy.has_locator:
            raise ConfigurationError(
                f"La familia {strategy.family.value} no define cómo localizar su ejecutable",
                details={"family": strategy.family.value},
            )

        self.strategy = strategy
        self.release = release
        self._resolver = resolver
        self._probe = probe
        self._driver_version_lookup = driver_version_lookup or probe.driver_version
        self._executable_path: Any = _UNSET
        self._raw_version: Any = _UNSET

    # ---------- identidad ----------
    @property
    def family(self) -> BrowserFamily:
        return self.strategy.family

    @property
    def protocol_id(self) -> str:
        return self.strategy.family.value

    @property
    def pretty_name(self) -> str:
        d = self.strategy.descriptor
        return f"{d.display_name} {d.release_name(self.release)}"

    # ---------- resolución / versión ----------
    @property
    def executable_path(self) -> Optional[str]:
        if self._executable_path is _UNSET:
            self._executable_path = self._resolver.resolve(self.family, self.release)
        return self._executable_path

    def raw_version(self) -> Optional[str]:
        """Salida cruda de versión (cacheada, también cuando es None)."""
        if self._raw_version is _UNSET:
            path = self.executable_path
            raw = None
            if path:
                try:
                    raw = self.strategy.raw_version(self._probe, path, self.release)
                except Exception as e:
                    log.debug("version_probe_failed", family=self.protocol_id, path=path, error=str(e))
            self._raw_version = raw
        return self._raw_version

    async def probe_version(self) -> Optional[str]:
        """
        Igual que raw_version() pero sin bloquear el event loop: el subproceso
        corre detrás de asyncio con el mismo timeout. Comparte la caché del handle.
        """
        if self._raw_version is _UNSET:
            path = await asyncio.to_thread(lambda: self.executable_path)
            raw = None
            if path:
                try:
                    raw = await self.strategy.raw_version_async(self._probe, path, self.release)
                except Exception as e:
                    log.debug("version_probe_failed", family=self.protocol_id, path=path, error=str(e))
            self._raw_version = raw
        return self._raw_version

    def major_version(self) -> int:
        return self.strategy.parse_version(self.raw_version())

    def driver_version(self) -> Optional[str]:
        name = self.strategy.descriptor.companion_driver_name
        if not name:
            return None
        try:
            return self._driver_version_lookup(name)
        except Exception as e:
            log.debug("driver_version_lookup_failed", driver=name, error=str(e))
            return None

    def is_denied(self) -> bool:
        major = self.major_version()
        if major not in self.strategy.deny_list:
            return False
        return self.strategy.is_denied(major, self.driver_version())

    def is_valid(self) -> bool:
        """Existe el ejecutable, cumple la versión mínima y no está en la deny-list. Nunca lanza."""
        try:
            result = self._check_valid()
        except Exception as e:
            log.warning("validity_check_failed", family=self.protocol_id, release=self.release.value, error=str(e))
            result = "error"
        validity_checks_total.labels(family=self.protocol_id, result=result).inc()
        return result == "valid"

    def _check_valid(self) -> str:
        path = self.executable_path
        if not path:
            return "missing"
        if not os.path.exists(path):
            return "missing"
        if not self.strategy.meets_min_version(self.major_version()):
            return "too_old"
        if self.is_denied():
            return "denied"
        return "valid"

    # ---------- capabilities ----------
    def build_capabilities(self, extra: Optional[Mapping[str, Any]] = None) -> CapabilityBag:
        """
        browserName + binario resuelto en el bloque del vendor, luego `extra`.

        El merge es de primer nivel: si `extra` trae su propio bloque del
        vendor (p. ej. goog:chromeOptions con sólo "args") reemplaza entero al
        calculado, binario incluido. Para conservarlo, repetir "binary" en
        ese bloque (executable_path).
        """
        caps = CapabilityBag(browserName=self.protocol_id)
        shape = self.strategy.descriptor.options_shape
        path = self.executable_path
        if path and shape.accepts_binary:
            caps = caps.merged({shape.vendor_key: {"binary": path}})
        elif not path:
            log.warning("capabilities_without_binary", family=self.protocol_id, release=self.release.value)
        return caps.merged(extra)

    def describe(self) -> BrowserInfo:
        return BrowserInfo(
            protocol_id=self.family,
            release=self.release,
            pretty_name=self.pretty_name,
            raw_version=self.raw_version(),
            major_version=self.major_version(),
            executable_path=self.executable_path,
            is_valid=self.is_valid(),
        )

    def __repr__(self) -> str:
        return f"LocalBrowserHandle({self.protocol_id!r}, {self.release.value!r})"


# =========================
# Navegador de la granja
# =========================

class RemoteBrowserHandle:
    """
    Navegador servido por la granja remota. Sin acceso al disco local;
    la única validación es que existan credenciales.
    """

    def __init__(
        self,
        strategy: FamilyStrategy,
        version: str,
        credentials: FarmCredentials,
        *,
        hub_url: str,
        capabilities: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.strategy = strategy
        self.version = str(version)
        self._credentials = credentials
        self._hub_url = hub_url
        self.capabilities = CapabilityBag(capabilities)

    @property
    def family(self) -> BrowserFamily:
        return self.strategy.family

    @property
    def protocol_id(self) -> str:
        return self.strategy.family.value

    @property
    def pretty_name(self) -> str:
        return f"{self.strategy.descriptor.display_name} - [{self.version}]"

    def with_capabilities(self, capabilities: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "RemoteBrowserHandle":
        return RemoteBrowserHandle(
            self.strategy,
            self.version,
            self._credentials,
            hub_url=self._hub_url,
            capabilities=self.capabilities.merged(capabilities, **kwargs),
        )

    def build_capabilities(self, extra: Optional[Mapping[str, Any]] = None) -> CapabilityBag:
        caps = CapabilityBag(self.strategy.remote_defaults).merged(
            browserName=self.protocol_id,
            version=self.version,
            username=self._credentials.username,
            accessKey=self._credentials.access_key,
        )
        return caps.merged(self.capabilities).merged(extra)

    @property
    def endpoint_url(self) -> str:
        """URL del hub con las credenciales embebidas (user:key@host)."""
        parts = urlsplit(self._hub_url)
        userinfo = f"{quote(self._credentials.username, safe='')}:{quote(self._credentials.access_key, safe='')}"
        host = parts.netloc.rsplit("@", 1)[-1]
        return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))

    def __repr__(self) -> str:
        return f"RemoteBrowserHandle({self.protocol_id!r}, {self.version!r})"
