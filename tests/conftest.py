"""
Configuración global de pytest con fixtures compartidas.

Este archivo proporciona:
- Settings de test apuntando a un directorio de instalación temporal
- Ejecutables falsos que imprimen una versión (sin navegadores reales)
- Reloj fijo y ArtifactFetcher falso (sin red)
- Catálogo sin acceso al sistema (plataforma fija, PATH vacío)
"""
from __future__ import annotations

import stat
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import pytest

from browserassist.application.services.browser_catalog import BrowserCatalog
from browserassist.config.settings import Settings
from browserassist.domain.models.browser_models import BrowserFamily, Release
from browserassist.infrastructure.browser.path_resolver import PathResolver
from browserassist.infrastructure.browser.platform_utils import LINUX


NOW_MS = 1_700_000_000_000


# =========================================================
# Helpers (no son fixtures)
# =========================================================

def write_executable(path: Path, output: str = "", *, exit_code: int = 0, sleep_s: float = 0) -> Path:
    """Crea un script que imprime `output` y sale con `exit_code`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = ["#!/bin/sh"]
    if sleep_s:
        # exec: el kill del timeout alcanza al sleep y no deja huérfanos con el pipe abierto
        lines.append(f"exec sleep {sleep_s}")
    if output:
        lines.append(f"echo '{output}'")
    lines.append(f"exit {exit_code}")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


def install_fake_browser(
    install_root: Path,
    family: BrowserFamily,
    release: Release,
    version_output: str,
) -> Path:
    """Deja un 'navegador' en el layout gestionado de linux."""
    managed = PathResolver(install_root, platform=LINUX).managed_path(family, release)
    assert managed is not None, f"{family.value} no tiene layout gestionado en linux"
    return write_executable(managed, version_output)


class FakeClock:
    """Reloj en milisegundos controlable desde el test."""

    def __init__(self, now_ms: int = NOW_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance_hours(self, hours: float) -> None:
        self.now_ms += int(hours * 3_600_000)


class FakeFetcher:
    """
    ArtifactFetcher en memoria.

    Registra las llamadas; opcionalmente "instala" un navegador falso en el
    destino o levanta el error configurado.
    """

    def __init__(
        self,
        *,
        install_root: Optional[Path] = None,
        version_output: str = "Google Chrome 120.0.6099.109",
        error: Optional[BaseException] = None,
    ) -> None:
        self.calls: List[Tuple[BrowserFamily, Release, Path]] = []
        self.install_root = install_root
        self.version_output = version_output
        self.error = error

    async def fetch(self, family: BrowserFamily, release: Release, destination_dir: Path) -> None:
        self.calls.append((family, release, destination_dir))
        if self.error is not None:
            raise self.error
        if self.install_root is not None:
            install_fake_browser(self.install_root, family, release, self.version_output)


# =========================================================
# Fixtures
# =========================================================

@pytest.fixture(autouse=True)
def disable_external_calls(monkeypatch: pytest.MonkeyPatch):
    """Evita que credenciales u overrides del entorno real se filtren a los tests."""
    for name in (
        "SAUCELABS_USERNAME",
        "SAUCELABS_ACCESS_KEY",
        "BROWSERASSIST_FARM_USERNAME",
        "BROWSERASSIST_FARM_ACCESS_KEY",
        "BROWSERASSIST_INSTALL_DIR",
        "BROWSERASSIST_PATH_OVERRIDES",
        "BROWSERASSIST_DEFAULT_EXPIRATION_HOURS",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def install_root(tmp_path: Path) -> Path:
    return tmp_path / "install"


@pytest.fixture
def test_settings(install_root: Path) -> Settings:
    """Settings sin credenciales de granja y con root temporal."""
    return Settings(install_dir=install_root, version_probe_timeout_s=5.0)


@pytest.fixture
def farm_settings(test_settings: Settings) -> Settings:
    return test_settings.with_farm_credentials("sauce-user", "s3cr3t-key")


@pytest.fixture
def no_system_browsers() -> Callable[[str], Optional[str]]:
    """`which` que nunca encuentra nada."""
    return lambda name: None


@pytest.fixture
def make_catalog(no_system_browsers):
    """Fábrica de catálogos aislados del sistema (linux, PATH vacío)."""

    def _make(settings: Settings, **kwargs) -> BrowserCatalog:
        kwargs.setdefault("platform", LINUX)
        kwargs.setdefault("which", no_system_browsers)
        kwargs.setdefault("driver_version_lookup", lambda name: None)
        return BrowserCatalog(settings, **kwargs)

    return _make


@pytest.fixture
def catalog(test_settings: Settings, make_catalog) -> BrowserCatalog:
    return make_catalog(test_settings)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_executable() -> Callable[..., Path]:
    return write_executable


@pytest.fixture
def fake_browser(install_root: Path):
    """install_fake_browser ligado al root temporal."""

    def _install(family: BrowserFamily, release: Release, version_output: str) -> Path:
        return install_fake_browser(install_root, family, release, version_output)

    return _install


@pytest.fixture
def make_fetcher(install_root: Path):
    def _make(**kwargs) -> FakeFetcher:
        kwargs.setdefault("install_root", install_root)
        return FakeFetcher(**kwargs)

    return _make
