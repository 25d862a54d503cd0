"""
Provider configuration: frozen dataclass, environment loader and YAML loader.

No hardcoded secrets. Builder methods (``with_*``) return a new config; the
provider never mutates a config in place.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .codec import KeyType
from .endpoints import KeycloakEndpoints, resolve_endpoints
from .exceptions import EncryptionConfigurationError, KeySourceError

logger = logging.getLogger(__name__)

DEFAULT_SCOPES: tuple[str, ...] = ("name", "email")


def _getenv(key: str, default: str | None = None) -> str | None:
    return os.environ.get(key, default)


def _getenv_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_encryption_key(path: str | Path) -> bytes:
    """Read raw key bytes (PEM or shared secret) from ``path``."""
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise KeySourceError(f"Cannot read encryption key file {path}: {e.strerror or e}") from e


@dataclass(frozen=True)
class KeycloakConfig:
    """
    Keycloak client configuration.

    Environment variables (see ``from_environ``):
        KEYCLOAK_AUTH_SERVER_URL: e.g. http://localhost:8080/auth
        KEYCLOAK_REALM: realm name, e.g. demo
        KEYCLOAK_CLIENT_ID / KEYCLOAK_CLIENT_SECRET / KEYCLOAK_REDIRECT_URI

    Optional:
        KEYCLOAK_ENCRYPTION_ALGORITHM: JWA name, e.g. RS256 or HS256.
        KEYCLOAK_ENCRYPTION_KEY or KEYCLOAK_ENCRYPTION_KEY_PATH (not both).
        KEYCLOAK_TIMEOUT_SECONDS: HTTP timeout (default 10).
        KEYCLOAK_CLOCK_SKEW_SECONDS: leeway for exp/nbf (default 0).
    """

    auth_server_url: str
    realm: str
    client_id: str
    client_secret: str | None = None
    redirect_uri: str | None = None
    state: str | None = None
    scopes: tuple[str, ...] = DEFAULT_SCOPES
    encryption_algorithm: str | None = None
    encryption_key: KeyType | None = None
    key_source_error: str | None = None  # set when the key file could not be read
    timeout_seconds: float = 10
    clock_skew_seconds: int = 0

    @property
    def endpoints(self) -> KeycloakEndpoints:
        return resolve_endpoints(self.auth_server_url, self.realm, self.client_id)

    @property
    def can_decode(self) -> bool:
        return bool(self.encryption_algorithm) and bool(self.encryption_key)

    def with_encryption_algorithm(self, algorithm: str | None) -> KeycloakConfig:
        return replace(self, encryption_algorithm=algorithm)

    def with_encryption_key(self, key: KeyType | None) -> KeycloakConfig:
        return replace(self, encryption_key=key, key_source_error=None)

    def with_encryption_key_path(self, path: str | Path) -> KeycloakConfig:
        """
        Return a config whose key is the content of ``path``.

        An unreadable file does not fail here: the key is left unset and the
        reason is recorded, so the first decode that needs the key raises
        EncryptionConfigurationError naming it.
        """
        try:
            key = load_encryption_key(path)
        except KeySourceError as e:
            logger.warning("Encryption key file unreadable path=%s", path)
            return replace(self, encryption_key=None, key_source_error=str(e))
        return replace(self, encryption_key=key, key_source_error=None)

    @classmethod
    def create(
        cls,
        *,
        auth_server_url: str,
        realm: str,
        client_id: str,
        encryption_key: KeyType | None = None,
        encryption_key_path: str | Path | None = None,
        **options: Any,
    ) -> KeycloakConfig:
        """
        Build a config from keyword options.

        ``encryption_key`` and ``encryption_key_path`` are mutually exclusive.
        """
        if encryption_key and encryption_key_path:
            raise EncryptionConfigurationError(
                "encryption_key and encryption_key_path are mutually exclusive"
            )
        scopes = options.pop("scopes", None)
        if scopes is not None:
            options["scopes"] = tuple(scopes)
        config = cls(
            auth_server_url=auth_server_url,
            realm=realm,
            client_id=client_id,
            encryption_key=encryption_key or None,
            **options,
        )
        if encryption_key_path:
            config = config.with_encryption_key_path(encryption_key_path)
        return config

    @classmethod
    def from_environ(cls) -> KeycloakConfig:
        server = _getenv("KEYCLOAK_AUTH_SERVER_URL")
        realm = _getenv("KEYCLOAK_REALM")
        client = _getenv("KEYCLOAK_CLIENT_ID")
        if not server or not realm or not client:
            raise ValueError(
                "KEYCLOAK_AUTH_SERVER_URL, KEYCLOAK_REALM and KEYCLOAK_CLIENT_ID must be set"
            )
        return cls.create(
            auth_server_url=server.strip(),
            realm=realm.strip(),
            client_id=client.strip(),
            client_secret=_strip_or_none(_getenv("KEYCLOAK_CLIENT_SECRET")),
            redirect_uri=_strip_or_none(_getenv("KEYCLOAK_REDIRECT_URI")),
            encryption_algorithm=_strip_or_none(_getenv("KEYCLOAK_ENCRYPTION_ALGORITHM")),
            encryption_key=_strip_or_none(_getenv("KEYCLOAK_ENCRYPTION_KEY")),
            encryption_key_path=_strip_or_none(_getenv("KEYCLOAK_ENCRYPTION_KEY_PATH")),
            timeout_seconds=_getenv_int("KEYCLOAK_TIMEOUT_SECONDS", 10),
            clock_skew_seconds=_getenv_int("KEYCLOAK_CLOCK_SKEW_SECONDS", 0),
        )


def _strip_or_none(s: str | None) -> str | None:
    if s is None:
        return None
    t = s.strip()
    return t if t else None


class KeycloakConfigModel(BaseModel):
    """Shape of the ``keycloak:`` section of a YAML config file."""

    auth_server_url: str
    realm: str
    client_id: str
    client_secret: str | None = None
    redirect_uri: str | None = None
    scopes: list[str] = Field(default_factory=lambda: list(DEFAULT_SCOPES))
    encryption_algorithm: str | None = None
    encryption_key: str | None = None
    encryption_key_path: str | None = None
    timeout_seconds: float = 10
    clock_skew_seconds: int = 0


def load_keycloak_config(path: Path) -> KeycloakConfig:
    """
    Load a config from YAML.

    Expected shape:

        keycloak:
          auth_server_url: http://localhost:8080/auth
          realm: demo
          client_id: app
          encryption_algorithm: RS256
          encryption_key_path: /etc/keycloak/realm-public.pem
    """
    raw_text = Path(path).read_text(encoding="utf-8")
    raw: dict[str, Any] = yaml.safe_load(raw_text) or {}

    if "keycloak" not in raw:
        raise ValueError(f"Missing top-level 'keycloak' key in config: {path}")

    model = KeycloakConfigModel.model_validate(raw["keycloak"])
    return KeycloakConfig.create(**model.model_dump())
