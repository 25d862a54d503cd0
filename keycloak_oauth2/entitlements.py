"""
Entitlements (permissions) returned by the Keycloak entitlement API.

The API answers ``{"rpt": "<signed JWT>"}``. Decoded, the RPT carries the
granted permissions under ``authorization.permissions``:

    {
      "authorization": {
        "permissions": [
          {"rsid": "...", "rsname": "Orders", "scopes": ["view", "edit"]}
        ]
      }
    }

Older Keycloak versions name the fields ``resource_set_id`` and
``resource_set_name``; both spellings are accepted.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ResourcePermission:
    """One resource and the scopes granted on it."""

    resource_id: str | None
    resource_name: str | None
    scopes: frozenset[str] = frozenset()

    @classmethod
    def from_claim(cls, entry: Mapping[str, Any]) -> ResourcePermission:
        resource_id = entry.get("rsid", entry.get("resource_set_id"))
        resource_name = entry.get("rsname", entry.get("resource_set_name"))
        raw_scopes = entry.get("scopes") or []
        if isinstance(raw_scopes, str):
            raw_scopes = [raw_scopes]
        return cls(
            resource_id=str(resource_id) if resource_id is not None else None,
            resource_name=str(resource_name) if resource_name is not None else None,
            scopes=frozenset(str(s) for s in raw_scopes if isinstance(s, str)),
        )


@dataclass(frozen=True)
class KeycloakEntitlements:
    """Read-only view over a decoded requesting party token."""

    permissions: tuple[ResourcePermission, ...] = ()
    claims: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> KeycloakEntitlements:
        authorization = claims.get("authorization")
        entries: Any = []
        if isinstance(authorization, Mapping):
            entries = authorization.get("permissions") or []
        elif "permissions" in claims:
            entries = claims.get("permissions") or []
        permissions = tuple(
            ResourcePermission.from_claim(entry) for entry in entries if isinstance(entry, Mapping)
        )
        return cls(permissions=permissions, claims=dict(claims))

    def _matching(self, resource: str) -> list[ResourcePermission]:
        return [p for p in self.permissions if resource in (p.resource_name, p.resource_id)]

    def resource_names(self) -> tuple[str, ...]:
        return tuple(p.resource_name for p in self.permissions if p.resource_name)

    def has_resource(self, resource: str) -> bool:
        """True if any permission names ``resource`` (by name or id)."""
        return bool(self._matching(resource))

    def scopes_for(self, resource: str) -> frozenset[str]:
        scopes: set[str] = set()
        for permission in self._matching(resource):
            scopes |= permission.scopes
        return frozenset(scopes)

    def has_scope(self, resource: str, scope: str) -> bool:
        return scope in self.scopes_for(resource)
