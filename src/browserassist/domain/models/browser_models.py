from __future__ import annotations

import copy
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, NonNegativeInt, field_validator


MS_PER_HOUR = 3_600_000


class BrowserFamily(str, Enum):
    """Conjunto cerrado de familias; el valor es el protocol id WebDriver."""
    chrome = "chrome"
    firefox = "firefox"
    opera = "opera"
    safari = "safari"
    edge = "microsoftedge"
    ie = "internet explorer"


class Release(str, Enum):
    stable = "stable"
    beta = "beta"
    unstable = "unstable"


class OptionsShape(Enum):
    """
    Forma de las capabilities. Varias familias comparten forma (Chrome y Opera),
    por eso la clave del binario se decide por forma y no por familia.
    """
    chromium = "goog:chromeOptions"
    gecko = "moz:firefoxOptions"
    edge = "ms:edgeOptions"
    safari = None
    ie = "se:ieOptions"

    @property
    def vendor_key(self) -> Optional[str]:
        return self.value

    @property
    def accepts_binary(self) -> bool:
        return self in (OptionsShape.chromium, OptionsShape.gecko, OptionsShape.edge)


# =========================
# Descriptor de familia
# =========================

class BrowserDescriptor(BaseModel):
    """
    Metadata inmutable de una familia: protocol id, nombre legible,
    nombre por release y driver acompañante (si existe).
    """
    model_config = ConfigDict(frozen=True)

    protocol_id: BrowserFamily
    display_name: str = Field(..., min_length=1)
    release_display_names: Dict[Release, str] = Field(default_factory=dict)
    companion_driver_name: Optional[str] = None
    options_shape: OptionsShape

    def release_name(self, release: Release) -> str:
        return self.release_display_names.get(release, release.value)


# =========================
# Capability bag
# =========================

class CapabilityBag(Mapping[str, Any]):
    """
    Mapa inmutable de capabilities. Cada capa devuelve un bag nuevo con
    merged(); nunca se muta uno compartido. Última escritura gana.
    """

    __slots__ = ("_data",)

    def __init__(self, data: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> None:
        merged: Dict[str, Any] = {}
        if data:
            merged.update(data)
        merged.update(kwargs)
        # deepcopy: los dicts anidados (goog:chromeOptions) no se comparten entre bags
        self._data = MappingProxyType(copy.deepcopy(merged))

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"CapabilityBag({dict(self._data)!r})"

    def merged(self, other: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> "CapabilityBag":
        data = dict(self._data)
        if other:
            data.update(other)
        data.update(kwargs)
        return CapabilityBag(data)

    def to_dict(self) -> Dict[str, Any]:
        """Copia mutable y profunda, lista para entregar a un cliente WebDriver."""
        return copy.deepcopy(dict(self._data))


# =========================
# Cache / credenciales / DTO
# =========================

class CacheEntry(BaseModel):
    """Timestamp (ms epoch) de la última descarga exitosa de family:release."""
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., min_length=3)
    last_fetched_at_ms: NonNegativeInt

    @field_validator("key")
    @classmethod
    def _validate_key(cls, v: str) -> str:
        if ":" not in v:
            raise ValueError("la clave debe tener forma 'family:release'")
        return v

    def is_expired(self, now_ms: int, max_age_hours: float) -> bool:
        return (now_ms - self.last_fetched_at_ms) > max_age_hours * MS_PER_HOUR


class FarmCredentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str = Field(..., min_length=1)
    access_key: str = Field(..., min_length=1)


class BrowserInfo(BaseModel):
    """Foto de un handle local para listados de descubrimiento."""
    model_config = ConfigDict(frozen=True)

    protocol_id: BrowserFamily
    release: Release
    pretty_name: str
    raw_version: Optional[str] = None
    major_version: int = -1
    executable_path: Optional[str] = None
    is_valid: bool = False
