from __future__ import annotations

import asyncio
import logging
import re
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, Optional, Pattern, Union

from browserassist.crosscutting.metrics import version_probes_total

logger = logging.getLogger(__name__)

# <major>.<minor>.<build>.<patch> (Chrome, Opera)
CHROMIUM_VERSION = re.compile(r"(\d+)\.\d+\.\d+\.\d+")
# <major>.<minor> (Firefox: "Mozilla Firefox 118.0.2", "Mozilla Firefox 120.0a1")
FIREFOX_VERSION = re.compile(r"(\d+)\.\d")
# CFBundleShortVersionString de Safari: "17.1" o "17.1.2"
SAFARI_VERSION = re.compile(r"(\d+)\.\d+(?:\.\d+)?")

_PLIST_SHORT_VERSION = re.compile(
    r"<key>CFBundleShortVersionString</key>\s+<string>(\d+\.\d+(?:\.\d+)?)</string>"
)
_DRIVER_VERSION = re.compile(r"(\d+\.\d+(?:\.\d+)?)")


class VersionProbe:
    """
    Obtiene la versión de un ejecutable sin lanzar nunca excepciones.

    Los fallos (exit != 0, timeout, archivo inexistente, salida inesperada)
    se normalizan a None / -1: "navegador presente pero versión desconocida"
    es un estado válido.
    """

    def __init__(self, timeout_s: float = 10.0) -> None:
        self.timeout_s = timeout_s

    # ------------------------------ probes ------------------------------

    def raw_version(self, executable: Union[str, Path, None]) -> Optional[str]:
        """Ejecuta '<exe> --version' con timeout acotado."""
        if not executable:
            return None
        try:
            proc = subprocess.run(
                [str(executable), "--version"],
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired:
            version_probes_total.labels(result="timeout").inc()
            logger.warning("version probe timeout (%ss): %s", self.timeout_s, executable)
            return None
        except (OSError, ValueError):
            version_probes_total.labels(result="failed").inc()
            logger.debug("version probe falló: %s", executable, exc_info=True)
            return None

        if proc.returncode != 0:
            version_probes_total.labels(result="failed").inc()
            logger.debug("version probe exit=%s: %s", proc.returncode, executable)
            return None

        version_probes_total.labels(result="ok").inc()
        return proc.stdout.strip() or None

    async def raw_version_async(self, executable: Union[str, Path, None]) -> Optional[str]:
        """Igual que raw_version, detrás de un subproceso asyncio; mata al hijo si vence el timeout."""
        if not executable:
            return None
        try:
            proc = await asyncio.create_subprocess_exec(
                str(executable),
                "--version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except (OSError, ValueError):
            version_probes_total.labels(result="failed").inc()
            logger.debug("version probe async falló: %s", executable, exc_info=True)
            return None

        try:
            stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_s)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            version_probes_total.labels(result="timeout").inc()
            logger.warning("version probe timeout (%ss): %s", self.timeout_s, executable)
            return None

        if proc.returncode != 0:
            version_probes_total.labels(result="failed").inc()
            return None

        version_probes_total.labels(result="ok").inc()
        return stdout.decode("utf-8", errors="replace").strip() or None

    def plist_version(self, plist_path: Union[str, Path]) -> Optional[str]:
        """Lee CFBundleShortVersionString de un version.plist de macOS."""
        try:
            content = Path(plist_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.debug("no se pudo leer %s", plist_path, exc_info=True)
            return None
        m = _PLIST_SHORT_VERSION.search(content)
        return m.group(1) if m else None

    def driver_version(self, driver_name: str, search_dirs: Iterable[Union[str, Path]] = ()) -> Optional[str]:
        """
        Versión 'x.y[.z]' del driver acompañante (operadriver, chromedriver...).

        Busca en search_dirs antes que en el PATH.
        """
        path: Optional[str] = None
        for d in search_dirs:
            candidate = Path(d) / driver_name
            if candidate.is_file():
                path = str(candidate)
                break
        if path is None:
            path = shutil.which(driver_name)
        if path is None:
            return None
        raw = self.raw_version(path)
        if not raw:
            return None
        m = _DRIVER_VERSION.search(raw)
        return m.group(1) if m else None

    # ------------------------------ parsing ------------------------------

    @staticmethod
    def major_version(raw: Optional[str], pattern: Pattern[str] = CHROMIUM_VERSION) -> int:
        """Prefijo numérico mayor; -1 si no matchea."""
        if not raw:
            return -1
        m = pattern.search(raw)
        if m is None:
            return -1
        return int(m.group(1))
