"""Normalized user identity built from the Keycloak user-info response."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


def _str_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class KeycloakResourceOwner:
    """
    The authenticated user as described by the user-info endpoint.

    ``claims`` keeps the full (decoded) response for provider extensions.
    """

    id: str | None
    name: str | None
    email: str | None
    preferred_username: str | None = None
    given_name: str | None = None
    family_name: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_claims(cls, claims: Mapping[str, Any]) -> KeycloakResourceOwner:
        return cls(
            id=_str_or_none(claims.get("sub")),
            name=_str_or_none(claims.get("name")),
            email=_str_or_none(claims.get("email")),
            preferred_username=_str_or_none(claims.get("preferred_username")),
            given_name=_str_or_none(claims.get("given_name")),
            family_name=_str_or_none(claims.get("family_name")),
            claims=dict(claims),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable dict (the raw claims)."""
        return dict(self.claims)
