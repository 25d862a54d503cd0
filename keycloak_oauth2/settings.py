from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .config import KeycloakConfig, load_keycloak_config


class Settings(BaseSettings):
    """
    Demo web app settings.

    Notes:
    - With `config_path` unset, the Keycloak client is configured from `KEYCLOAK_*`
      variables (see `KeycloakConfig.from_environ`).
    - With `config_path` set, the YAML file is used instead.
    - `state_secret` signs the login state cookie; set it when running several workers.
    """

    model_config = SettingsConfigDict(env_prefix="KEYCLOAK_APP_", extra="ignore")

    config_path: str | None = None
    log_level: str = "INFO"
    state_secret: str | None = None

    def resolved_config_path(self) -> Path | None:
        return Path(self.config_path) if self.config_path else None

    def keycloak_config(self) -> KeycloakConfig:
        path = self.resolved_config_path()
        if path is not None:
            return load_keycloak_config(path)
        return KeycloakConfig.from_environ()


@lru_cache
def get_settings() -> Settings:
    return Settings()
