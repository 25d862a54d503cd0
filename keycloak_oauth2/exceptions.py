"""Errors raised by the Keycloak provider. Never include tokens or keys in messages."""

from __future__ import annotations

from typing import Any


class KeycloakError(Exception):
    """Base class for everything this package raises on purpose."""

    pass


class EncryptionConfigurationError(KeycloakError):
    """
    A response may be signed/encrypted but the algorithm or key is missing.

    Raised before any decode is attempted; callers must not silently skip
    verification.
    """

    pass


class KeySourceError(EncryptionConfigurationError):
    """The encryption key file could not be read."""

    pass


class DecodingError(KeycloakError):
    """Signature verification or payload parsing failed."""

    pass


class IdentityProviderError(KeycloakError):
    """The identity provider answered with an ``error`` / ``error_description`` pair."""

    def __init__(
        self,
        message: str,
        response_body: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.response_body = response_body
        self.status_code = status_code


class TransportError(KeycloakError):
    """The provider response could not be parsed (e.g. broken JSON body)."""

    pass
