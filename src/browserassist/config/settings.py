from __future__ import annotations

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AliasChoices, Field, field_validator
from dotenv import load_dotenv
from typing import Optional, Dict

from browserassist.crosscutting.exceptions import CredentialsMissingError
from browserassist.crosscutting.logging_config import get_logger
from browserassist.domain.models.browser_models import FarmCredentials
from browserassist.infrastructure.browser.platform_utils import default_install_dir

load_dotenv()
log = get_logger("settings")

DEFAULT_FARM_HUB_URL = "https://ondemand.saucelabs.com:443/wd/hub"


def _clean_secret(v: Optional[str]) -> Optional[str]:
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class Settings(BaseSettings):
    """
    Config central de browserassist.

    Se construye una vez por sesión lógica y se pasa explícitamente al
    catálogo y al CacheStore (no hay singleton global). Los cambios se hacen
    con with_*(), que devuelven una copia.
    """

    model_config = SettingsConfigDict(
        env_prefix="BROWSERASSIST_",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # --- Instalación gestionada ---
    install_dir: Optional[Path] = Field(default=None)
    default_expiration_hours: float = Field(default=24.0, ge=0)
    # {"chrome:beta": "/opt/custom/chrome"}; por env como JSON
    path_overrides: Dict[str, str] = Field(default_factory=dict)

    # --- Probes ---
    version_probe_timeout_s: float = Field(default=10.0, gt=0)

    # --- Granja remota (Sauce Labs) ---
    farm_username: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("farm_username", "BROWSERASSIST_FARM_USERNAME", "SAUCELABS_USERNAME"),
    )
    farm_access_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("farm_access_key", "BROWSERASSIST_FARM_ACCESS_KEY", "SAUCELABS_ACCESS_KEY"),
    )
    farm_hub_url: str = Field(default=DEFAULT_FARM_HUB_URL)

    # --- Sesiones ---
    session_timeout_s: float = Field(default=30.0, gt=0)
    session_open_attempts: int = Field(default=1, ge=1)

    # --- Logging ---
    log_level: str = Field(default="INFO")
    log_json: Optional[bool] = Field(default=None)

    @field_validator("path_overrides")
    @classmethod
    def _validate_overrides(cls, v: Dict[str, str]) -> Dict[str, str]:
        for key in v:
            if key.count(":") != 1:
                raise ValueError(f"override inválido '{key}' (esperado 'family:release')")
        return v

    @field_validator("farm_username", "farm_access_key")
    @classmethod
    def _blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        return _clean_secret(v)

    # ---------- API pública ----------
    @property
    def install_root(self) -> Path:
        return Path(self.install_dir).expanduser() if self.install_dir else default_install_dir()

    @property
    def cache_dir(self) -> Path:
        return self.install_root / "localstorage"

    def farm_credentials(self) -> FarmCredentials:
        if not self.farm_username or not self.farm_access_key:
            raise CredentialsMissingError(
                "Faltan credenciales de la granja (usuario y access key)",
                details={
                    "username_set": bool(self.farm_username),
                    "access_key_set": bool(self.farm_access_key),
                },
            )
        return FarmCredentials(username=self.farm_username, access_key=self.farm_access_key)

    def with_install_dir(self, install_dir: Optional[Path]) -> "Settings":
        log.info("install_dir_changed", install_dir=str(install_dir) if install_dir else None)
        return self.model_copy(update={"install_dir": Path(install_dir) if install_dir else None})

    def with_farm_credentials(self, username: str, access_key: str) -> "Settings":
        return self.model_copy(update={
            "farm_username": _clean_secret(username),
            "farm_access_key": _clean_secret(access_key),
        })


def get_settings(**overrides) -> Settings:
    """Lee env/.env y aplica overrides explícitos."""
    return Settings(**overrides)
