"""
Almacenamiento clave/valor respaldado por un directorio.

Un archivo por clave (nombre URL-quoted), valor en texto plano. Compartido
por todos los procesos que usan el mismo directorio de instalación.
"""
from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional, Union
from urllib.parse import quote

from browserassist.crosscutting.logging_config import get_logger

logger = get_logger(__name__)


class LocalStorage:
    """
    Store persistente minimalista (getItem/setItem).

    Las escrituras reemplazan el archivo de forma atómica: la última gana y
    un lector nunca ve un valor a medio escribir.
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)

    def _path_for(self, key: str) -> Path:
        return self.directory / quote(key, safe="")

    def get_item(self, key: str) -> Optional[str]:
        """
        Retorna el valor guardado o None.

        Un archivo ilegible se trata como ausente (se loguea).
        """
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("storage_read_failed", key=key, path=str(path), error=str(e))
            return None

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=".tmp-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp, self._path_for(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
        logger.debug("storage_write", key=key)
