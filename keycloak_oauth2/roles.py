"""
Realm and client roles carried inside a Keycloak access token.

Keycloak puts roles in two custom claims of the access token:

* ``realm_access.roles`` - roles granted at realm level;
* ``resource_access.<client-id>.roles`` - roles granted per client.

Extraction is an optional enrichment: when there is no token or no
algorithm/key to verify it with, the answer is "no roles", not an error.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .codec import KeyType, decode_token

logger = logging.getLogger(__name__)

REALM_CONTAINER = "realm"


def _role_names(container: Any) -> frozenset[str]:
    if not isinstance(container, Mapping):
        return frozenset()
    raw = container.get("roles")
    if isinstance(raw, str):
        return frozenset([raw])
    if not isinstance(raw, list):
        return frozenset()
    return frozenset(str(r) for r in raw if isinstance(r, str))


def token_value(token: Any) -> str | None:
    """Return the bearer string of an OAuth2 token dict, or the token itself if it is a string."""
    if token is None:
        return None
    if isinstance(token, str):
        return token.strip() or None
    if isinstance(token, Mapping):
        value = token.get("access_token")
        if not value:
            return None
        return str(value).strip() or None
    return None


@dataclass(frozen=True)
class KeycloakRoles:
    """Read-only view over realm roles and per-client (resource) roles."""

    realm_roles: frozenset[str] = frozenset()
    resource_roles: dict[str, frozenset[str]] = field(default_factory=dict)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> KeycloakRoles:
        resource_roles: dict[str, frozenset[str]] = {}
        resource_access = claims.get("resource_access")
        if isinstance(resource_access, Mapping):
            for name, container in resource_access.items():
                resource_roles[str(name)] = _role_names(container)
        return cls(
            realm_roles=_role_names(claims.get("realm_access")),
            resource_roles=resource_roles,
        )

    @classmethod
    def from_token(
        cls,
        token: Any,
        key: KeyType,
        algorithm: str,
        *,
        leeway: int = 0,
    ) -> KeycloakRoles:
        claims = decode_token(token_value(token), algorithm, key, leeway=leeway)
        return cls.from_claims(claims or {})

    def containers(self) -> tuple[str, ...]:
        """Container names: ``"realm"`` followed by client ids in sorted order."""
        return (REALM_CONTAINER, *sorted(self.resource_roles))

    def roles_for(self, container: str = REALM_CONTAINER) -> frozenset[str]:
        if container == REALM_CONTAINER:
            return self.realm_roles
        return self.resource_roles.get(container, frozenset())

    def has_realm_role(self, role: str) -> bool:
        return role in self.realm_roles

    def has_resource_role(self, resource: str, role: str) -> bool:
        return role in self.resource_roles.get(resource, frozenset())

    @property
    def is_empty(self) -> bool:
        return not self.realm_roles and not any(self.resource_roles.values())

    def to_dict(self) -> dict[str, list[str]]:
        """Return a JSON-serializable dict keyed by container name."""
        return {name: sorted(self.roles_for(name)) for name in self.containers()}


def extract_roles(
    token: Any,
    algorithm: str | None = None,
    key: KeyType | None = None,
    *,
    leeway: int = 0,
) -> KeycloakRoles | None:
    """
    Decode ``token`` and return its roles, or None when extraction is not possible.

    Missing token, algorithm or key yields None. Decoding failures
    (bad signature, expired token) still raise DecodingError.
    """
    if token_value(token) is None or not algorithm or not key:
        logger.debug("Skipping role extraction: token or decoding configuration missing")
        return None
    return KeycloakRoles.from_token(token, key, algorithm, leeway=leeway)
