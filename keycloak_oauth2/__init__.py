"""
Keycloak OAuth 2.0 / OpenID Connect client.

Drives the authorization code grant against a Keycloak realm and extracts
the Keycloak extensions: roles embedded in the access token and entitlements
from the entitlement API. Start with ``KeycloakProvider(KeycloakConfig(...))``.
"""

from .codec import decode_token
from .config import KeycloakConfig, load_encryption_key, load_keycloak_config
from .endpoints import KeycloakEndpoints, resolve_endpoints
from .entitlements import KeycloakEntitlements, ResourcePermission
from .exceptions import (
    DecodingError,
    EncryptionConfigurationError,
    IdentityProviderError,
    KeycloakError,
    KeySourceError,
    TransportError,
)
from .provider import KeycloakProvider
from .resource_owner import KeycloakResourceOwner
from .roles import KeycloakRoles, extract_roles

__all__ = [
    "DecodingError",
    "EncryptionConfigurationError",
    "IdentityProviderError",
    "KeycloakConfig",
    "KeycloakEndpoints",
    "KeycloakEntitlements",
    "KeycloakError",
    "KeycloakProvider",
    "KeycloakResourceOwner",
    "KeycloakRoles",
    "KeySourceError",
    "ResourcePermission",
    "TransportError",
    "decode_token",
    "extract_roles",
    "load_encryption_key",
    "load_keycloak_config",
    "resolve_endpoints",
]
