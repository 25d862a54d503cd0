from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status

from keycloak_oauth2.config import KeycloakConfig
from keycloak_oauth2.provider import KeycloakProvider

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer"


def get_keycloak_config(request: Request) -> KeycloakConfig:
    config = getattr(request.app.state, "keycloak_config", None)
    if config is None:
        raise RuntimeError("Keycloak config not loaded. Did app startup run?")
    return config


def get_provider(config: KeycloakConfig = Depends(get_keycloak_config)) -> KeycloakProvider:
    """One provider per request: cached token/entitlements never leak across users."""
    return KeycloakProvider(config)


def get_bearer_token(request: Request) -> str:
    """
    Extract the access token from `Authorization: Bearer <token>`.

    401 when the header is missing, 400 when it is malformed.
    """

    raw = request.headers.get("Authorization")
    if not raw:
        logger.info("Missing Authorization header path=%s method=%s", request.url.path, request.method)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    prefix = f"{BEARER_PREFIX} "
    if not raw.startswith(prefix):
        logger.warning("Invalid Authorization header format path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid Authorization. Expected '{BEARER_PREFIX} <token>'.",
        )

    token = raw[len(prefix) :].strip()
    if not token:
        logger.warning("Empty bearer token path=%s method=%s", request.url.path, request.method)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid Authorization. Missing token after '{BEARER_PREFIX}'.",
        )
    return token
