"""
Utilidades de plataforma para la búsqueda de navegadores.

- Normaliza sys.platform a 'mac', 'linux', 'windows' u 'other'
- Directorio de instalación gestionado por defecto
- Expansión de rutas conocidas de Windows
"""
from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterable, List, Optional

MAC = "mac"
LINUX = "linux"
WINDOWS = "windows"
OTHER = "other"


def get_platform(raw: Optional[str] = None) -> str:
    """Retorna 'mac', 'linux', 'windows' u 'other' (no soportado)."""
    raw = raw if raw is not None else sys.platform
    if raw.startswith("darwin"):
        return MAC
    if raw.startswith("win"):
        return WINDOWS
    if raw.startswith("linux"):
        return LINUX
    return OTHER


def default_install_dir(platform: Optional[str] = None) -> Path:
    """
    ~/.selenium-assistant, o ~/selenium-assistant en Windows
    (allí las carpetas con punto no se ocultan y molestan).
    """
    folder = "selenium-assistant" if (platform or get_platform()) == WINDOWS else ".selenium-assistant"
    return Path.home() / folder


def expand_windows_candidates(relative: str, roots: Iterable[str] = ("%ProgramFiles%", "%ProgramFiles(x86)%", "%LocalAppData%")) -> List[str]:
    """Expande '<root>\\relative' para cada raíz cuya variable exista."""
    out: List[str] = []
    for root in roots:
        expanded = os.path.expandvars(root)
        if expanded == root:
            # variable no definida en este entorno
            continue
        out.append(expanded + "\\" + relative)
    return out
