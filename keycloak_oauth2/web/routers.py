from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import requests
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse

from keycloak_oauth2.exceptions import (
    DecodingError,
    EncryptionConfigurationError,
    IdentityProviderError,
    TransportError,
)
from keycloak_oauth2.provider import KeycloakProvider
from keycloak_oauth2.roles import extract_roles

from .dependencies import get_bearer_token, get_provider
from .state import clear_state_cookie, get_state_secret, issue_state_cookie, verify_state

logger = logging.getLogger(__name__)

router = APIRouter()


@contextmanager
def _provider_errors() -> Iterator[None]:
    """Map client errors to HTTP: bad config/token -> 400, upstream failure -> 502."""
    try:
        yield
    except (EncryptionConfigurationError, DecodingError) as exc:
        logger.warning("Token handling failed: %s", type(exc).__name__)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except IdentityProviderError as exc:
        logger.warning("Identity provider rejected request status=%s", exc.status_code)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    except (TransportError, requests.RequestException) as exc:
        logger.warning("Identity provider unreachable: %s", type(exc).__name__)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Identity provider unavailable") from exc


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/login")
def login(
    provider: KeycloakProvider = Depends(get_provider),
    secret: str = Depends(get_state_secret),
) -> RedirectResponse:
    url, state = provider.get_authorization_url()
    response = RedirectResponse(url)
    redirect_uri = provider.config.redirect_uri or ""
    issue_state_cookie(response, state, secret, secure=redirect_uri.startswith("https:"))
    return response


@router.get("/callback")
def callback(
    request: Request,
    response: Response,
    code: str,
    state: str | None = None,
    provider: KeycloakProvider = Depends(get_provider),
    secret: str = Depends(get_state_secret),
) -> dict[str, Any]:
    verify_state(request, state, secret)
    clear_state_cookie(response)
    with _provider_errors():
        provider.get_access_token(code)
        owner = provider.get_resource_owner()
        roles = provider.check_for_keycloak_roles()
    return {
        "resource_owner": owner.to_dict(),
        "roles": roles.to_dict() if roles is not None else None,
    }


@router.get("/me")
def me(
    token: str = Depends(get_bearer_token),
    provider: KeycloakProvider = Depends(get_provider),
) -> dict[str, Any]:
    config = provider.config
    with _provider_errors():
        owner = provider.get_resource_owner(token)
        roles = extract_roles(
            token,
            config.encryption_algorithm,
            config.encryption_key,
            leeway=config.clock_skew_seconds,
        )
    return {
        "resource_owner": owner.to_dict(),
        "roles": roles.to_dict() if roles is not None else None,
    }


@router.get("/entitlements")
def entitlements(
    token: str = Depends(get_bearer_token),
    provider: KeycloakProvider = Depends(get_provider),
) -> dict[str, Any]:
    with _provider_errors():
        view = provider.get_entitlements(token)
    return {
        "permissions": [
            {
                "resource_id": p.resource_id,
                "resource_name": p.resource_name,
                "scopes": sorted(p.scopes),
            }
            for p in view.permissions
        ]
    }
