"""
Estrategias por familia de navegador.

Cada familia es UN valor de FamilyStrategy (no una subclase): descriptor,
releases locales, cómo encontrar el ejecutable (directorio gestionado y
ubicaciones del sistema), cómo leer y parsear la versión, versión mínima y
deny-list. FAMILIES es el despacho cerrado por BrowserFamily.
"""
from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Pattern, Tuple

from packaging.version import InvalidVersion, Version

from browserassist.domain.models.browser_models import (
    BrowserDescriptor,
    BrowserFamily,
    OptionsShape,
    Release,
)
from browserassist.infrastructure.browser.platform_utils import (
    LINUX,
    MAC,
    WINDOWS,
    expand_windows_candidates,
)
from browserassist.infrastructure.browser.version_probe import (
    CHROMIUM_VERSION,
    FIREFOX_VERSION,
    SAFARI_VERSION,
    VersionProbe,
)

Which = Callable[[str], Optional[str]]
ManagedLocator = Callable[[Path, Release, str], Optional[Path]]
SystemLocator = Callable[[Release, str, Which], Optional[str]]
VersionSource = Callable[[VersionProbe, str, Release], Optional[str]]

_EMPTY: Mapping[Any, Any] = MappingProxyType({})


@dataclass(frozen=True)
class FamilyStrategy:
    descriptor: BrowserDescriptor
    local_releases: Tuple[Release, ...] = ()
    managed_path: Optional[ManagedLocator] = None
    system_path: Optional[SystemLocator] = None
    version_pattern: Pattern[str] = CHROMIUM_VERSION
    version_source: Optional[VersionSource] = None
    min_version: Optional[int] = None
    deny_list: Mapping[int, str] = field(default_factory=lambda: _EMPTY)
    remote_defaults: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)

    @property
    def family(self) -> BrowserFamily:
        return self.descriptor.protocol_id

    @property
    def has_locator(self) -> bool:
        return self.managed_path is not None or self.system_path is not None

    def supports_release(self, release: Release) -> bool:
        return release in self.local_releases

    def raw_version(self, probe: VersionProbe, executable: str, release: Release) -> Optional[str]:
        if self.version_source is not None:
            return self.version_source(probe, executable, release)
        return probe.raw_version(executable)

    async def raw_version_async(self, probe: VersionProbe, executable: str, release: Release) -> Optional[str]:
        """Como raw_version; '--version' corre como subproceso asyncio, el resto en un thread."""
        if self.version_source is not None:
            return await asyncio.to_thread(self.version_source, probe, executable, release)
        return await probe.raw_version_async(executable)

    def parse_version(self, raw: Optional[str]) -> int:
        return VersionProbe.major_version(raw, self.version_pattern)

    def meets_min_version(self, major: int) -> bool:
        """Sin mínimo siempre pasa; versión desconocida (-1) no se filtra aquí."""
        if self.min_version is None or major == -1:
            return True
        return major >= self.min_version

    def is_denied(self, major: int, driver_version: Optional[str]) -> bool:
        """
        Una versión listada sólo se permite si el driver acompañante es
        estrictamente mayor que la versión rota registrada. Driver desconocido
        o versión no comparable: se deniega.
        """
        minimum_broken = self.deny_list.get(major)
        if minimum_broken is None:
            return False
        if not driver_version:
            return True
        try:
            return not Version(driver_version) > Version(minimum_broken)
        except InvalidVersion:
            return True


# ------------------------------ helpers ------------------------------

def _first_existing(candidates) -> Optional[str]:
    for c in candidates:
        if c and os.path.exists(c):
            return c
    return None


def _mac_app(app: str, exe: str) -> str:
    return f"/Applications/{app}.app/Contents/MacOS/{exe}"


# =========================
# Chrome
# =========================

_CHROME_LINUX_SUBPATH = {
    Release.stable: "opt/google/chrome/google-chrome",
    Release.beta: "opt/google/chrome-beta/google-chrome-beta",
    Release.unstable: "opt/google/chrome-unstable/google-chrome-unstable",
}
_CHROME_MAC_APP = {
    Release.stable: "Google Chrome",
    Release.beta: "Google Chrome Beta",
    Release.unstable: "Google Chrome Dev",
}
_CHROME_WINDOWS_SUBPATH = {
    Release.stable: r"Google\Chrome\Application\chrome.exe",
    Release.beta: r"Google\Chrome Beta\Application\chrome.exe",
    Release.unstable: r"Google\Chrome Dev\Application\chrome.exe",
}


def _chrome_managed(root: Path, release: Release, platform: str) -> Optional[Path]:
    base = root / BrowserFamily.chrome.value / release.value
    if platform == LINUX:
        return base / _CHROME_LINUX_SUBPATH[release]
    if platform == MAC:
        return base / "Google Chrome.app" / "Contents" / "MacOS" / "Google Chrome"
    return None


def _chrome_system(release: Release, platform: str, which: Which) -> Optional[str]:
    if platform == MAC:
        app = _CHROME_MAC_APP[release]
        return _first_existing([_mac_app(app, app)])
    if platform == LINUX:
        return which({
            Release.stable: "google-chrome",
            Release.beta: "google-chrome-beta",
            Release.unstable: "google-chrome-unstable",
        }[release])
    if platform == WINDOWS:
        return _first_existing(expand_windows_candidates(_CHROME_WINDOWS_SUBPATH[release]))
    return None


CHROME = FamilyStrategy(
    descriptor=BrowserDescriptor(
        protocol_id=BrowserFamily.chrome,
        display_name="Google Chrome",
        release_display_names={Release.stable: "Stable", Release.beta: "Beta", Release.unstable: "Dev"},
        companion_driver_name="chromedriver",
        options_shape=OptionsShape.chromium,
    ),
    local_releases=(Release.stable, Release.beta, Release.unstable),
    managed_path=_chrome_managed,
    system_path=_chrome_system,
    version_pattern=CHROMIUM_VERSION,
    min_version=47,
)


# =========================
# Firefox
# =========================

def _firefox_managed(root: Path, release: Release, platform: str) -> Optional[Path]:
    base = root / BrowserFamily.firefox.value / release.value
    if platform == LINUX:
        return base / "firefox"
    if platform == MAC:
        app = "Firefox Nightly.app" if release == Release.unstable else "Firefox.app"
        return base / app / "Contents" / "MacOS" / "firefox"
    return None


def _firefox_system(release: Release, platform: str, which: Which) -> Optional[str]:
    if platform == MAC:
        # El instalador de beta pisa Firefox.app: no hay ubicación fija para beta
        # y stable puede estar apuntando al binario beta.
        if release == Release.stable:
            return _first_existing([_mac_app("Firefox", "firefox")])
        if release == Release.unstable:
            return _first_existing([_mac_app("Firefox Nightly", "firefox")])
        return None
    if platform == LINUX:
        return which("firefox") if release == Release.stable else None
    if platform == WINDOWS and release == Release.stable:
        return _first_existing(expand_windows_candidates(r"Mozilla Firefox\firefox.exe", ("%ProgramFiles%", "%ProgramFiles(x86)%")))
    return None


FIREFOX = FamilyStrategy(
    descriptor=BrowserDescriptor(
        protocol_id=BrowserFamily.firefox,
        display_name="Firefox",
        release_display_names={Release.stable: "Stable", Release.beta: "Beta", Release.unstable: "Nightly"},
        companion_driver_name="geckodriver",
        options_shape=OptionsShape.gecko,
    ),
    local_releases=(Release.stable, Release.beta, Release.unstable),
    managed_path=_firefox_managed,
    system_path=_firefox_system,
    version_pattern=FIREFOX_VERSION,
    min_version=47,
)


# =========================
# Opera
# =========================

_OPERA_BINARY = {
    Release.stable: "opera",
    Release.beta: "opera-beta",
    Release.unstable: "opera-developer",
}
_OPERA_MAC_APP = {
    Release.stable: "Opera",
    Release.beta: "Opera Beta",
    Release.unstable: "Opera Developer",
}


def _opera_managed(root: Path, release: Release, platform: str) -> Optional[Path]:
    if platform != LINUX:
        return None
    return root / BrowserFamily.opera.value / release.value / "usr" / "bin" / _OPERA_BINARY[release]


def _opera_system(release: Release, platform: str, which: Which) -> Optional[str]:
    if platform == MAC:
        return _first_existing([_mac_app(_OPERA_MAC_APP[release], "Opera")])
    if platform == LINUX:
        return which(_OPERA_BINARY[release])
    return None


OPERA = FamilyStrategy(
    descriptor=BrowserDescriptor(
        protocol_id=BrowserFamily.opera,
        display_name="Opera",
        release_display_names={Release.stable: "Stable", Release.beta: "Beta", Release.unstable: "Developer"},
        companion_driver_name="operadriver",
        options_shape=OptionsShape.chromium,
    ),
    local_releases=(Release.stable, Release.beta, Release.unstable),
    managed_path=_opera_managed,
    system_path=_opera_system,
    version_pattern=CHROMIUM_VERSION,
    # operadriver <= 0.2.2 no funciona con Opera 41-43
    deny_list=MappingProxyType({41: "0.2.2", 42: "0.2.2", 43: "0.2.2"}),
)


# =========================
# Safari
# =========================

_SAFARI_APP = {
    Release.stable: "Safari",
    Release.beta: "Safari Technology Preview",
}


def _safari_system(release: Release, platform: str, which: Which) -> Optional[str]:
    if platform != MAC or release not in _SAFARI_APP:
        return None
    app = _SAFARI_APP[release]
    return _first_existing([_mac_app(app, app)])


def _safari_version(probe: VersionProbe, executable: str, release: Release) -> Optional[str]:
    # Safari no responde a --version: <App>.app/Contents/version.plist
    parents = Path(executable).parents
    if len(parents) < 2:
        return None
    return probe.plist_version(parents[1] / "version.plist")


SAFARI = FamilyStrategy(
    descriptor=BrowserDescriptor(
        protocol_id=BrowserFamily.safari,
        display_name="Safari",
        release_display_names={Release.stable: "Stable", Release.beta: "Technology Preview"},
        options_shape=OptionsShape.safari,
    ),
    local_releases=(Release.stable, Release.beta),
    system_path=_safari_system,
    version_pattern=SAFARI_VERSION,
    version_source=_safari_version,
    min_version=10,
)


# =========================
# Sólo granja remota
# =========================

EDGE = FamilyStrategy(
    descriptor=BrowserDescriptor(
        protocol_id=BrowserFamily.edge,
        display_name="Microsoft Edge",
        release_display_names={Release.stable: "Stable"},
        options_shape=OptionsShape.edge,
    ),
    # la granja sólo sirve Edge sobre Windows 10
    remote_defaults=MappingProxyType({"platform": "Windows 10"}),
)

IE = FamilyStrategy(
    descriptor=BrowserDescriptor(
        protocol_id=BrowserFamily.ie,
        display_name="Internet Explorer",
        release_display_names={Release.stable: "Stable"},
        options_shape=OptionsShape.ie,
    ),
)


FAMILIES: Dict[BrowserFamily, FamilyStrategy] = {
    BrowserFamily.chrome: CHROME,
    BrowserFamily.firefox: FIREFOX,
    BrowserFamily.opera: OPERA,
    BrowserFamily.safari: SAFARI,
    BrowserFamily.edge: EDGE,
    BrowserFamily.ie: IE,
}
