"""Keycloak endpoint URLs derived from server URL, realm and client id."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class KeycloakEndpoints:
    authorization_url: str
    token_url: str
    userinfo_url: str
    entitlements_url: str


def base_url_with_realm(auth_server_url: str, realm: str) -> str:
    return f"{auth_server_url}/realms/{realm}"


def resolve_endpoints(auth_server_url: str, realm: str, client_id: str) -> KeycloakEndpoints:
    """
    Map (server URL, realm, client id) to the four provider endpoints.

    Plain string concatenation: the URLs are a wire contract with the server,
    so no normalisation (trailing slashes etc.) is applied. Malformed URLs
    only show up when the request is sent.

    Example:
        http://localhost:8080/auth, demo, app
        -> http://localhost:8080/auth/realms/demo/authz/entitlement/app
    """
    base = base_url_with_realm(auth_server_url, realm)
    return KeycloakEndpoints(
        authorization_url=f"{base}/protocol/openid-connect/auth",
        token_url=f"{base}/protocol/openid-connect/token",
        userinfo_url=f"{base}/protocol/openid-connect/userinfo",
        entitlements_url=f"{base}/authz/entitlement/{client_id}",
    )
