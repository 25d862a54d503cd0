"""
Keycloak OAuth 2.0 / OpenID Connect provider.

Background for newcomers:
    The Authorization Code grant itself (building the authorize URL, swapping
    the code for a token) is generic OAuth 2.0 and handled by authlib's
    ``OAuth2Session``, which this class *holds* rather than subclasses. What
    is Keycloak-specific lives here:

    1. **Endpoints** are derived from server URL + realm (no discovery).
    2. **Signed payloads** (user info, RPT) are verified with the configured
       algorithm + key before any claim is read.
    3. **Roles** are read from the access token's ``realm_access`` and
       ``resource_access`` claims.
    4. **Entitlements** come from a second call to the entitlement API and are
       cached for the lifetime of the provider instance.

    A provider instance is meant to serve one login flow. It holds the last
    access token it fetched plus the derived roles/entitlements, without
    locking; create one provider per request if you share configuration
    across threads.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import requests
from authlib.common.errors import AuthlibBaseError
from authlib.integrations.requests_client import OAuth2Session

from .codec import KeyType, decode_token
from .config import KeycloakConfig
from .endpoints import KeycloakEndpoints
from .entitlements import KeycloakEntitlements
from .exceptions import DecodingError, IdentityProviderError
from .resource_owner import KeycloakResourceOwner
from .responses import check_response, parse_response
from .roles import KeycloakRoles, extract_roles, token_value

logger = logging.getLogger(__name__)


def _build_session(config: KeycloakConfig) -> OAuth2Session:
    return OAuth2Session(
        client_id=config.client_id,
        client_secret=config.client_secret,
        scope=list(config.scopes),
        redirect_uri=config.redirect_uri,
        state=config.state,
    )


class KeycloakProvider:
    """
    Keycloak client: authorization code grant plus role/entitlement extraction.

    ``session`` may be injected (tests, custom transport adapters); by default
    one is built from ``config``.
    """

    def __init__(self, config: KeycloakConfig, session: OAuth2Session | None = None) -> None:
        self._config = config
        self._endpoints = config.endpoints
        self._session = session if session is not None else _build_session(config)
        self._access_token: Any = None
        self._keycloak_roles: KeycloakRoles | None = None
        self._keycloak_entitlements: KeycloakEntitlements | None = None

    @property
    def config(self) -> KeycloakConfig:
        return self._config

    @property
    def endpoints(self) -> KeycloakEndpoints:
        return self._endpoints

    @property
    def access_token(self) -> Any:
        """The last token obtained by ``get_access_token`` (None before the exchange)."""
        return self._access_token

    # ---- Builders --------------------------------------------------------------------

    def with_config(self, config: KeycloakConfig) -> KeycloakProvider:
        """
        Return a provider for ``config`` sharing this one's session.

        The cached token, roles and entitlements are not carried over.
        """
        return KeycloakProvider(config, session=self._session)

    def with_encryption_algorithm(self, algorithm: str | None) -> KeycloakProvider:
        return self.with_config(self._config.with_encryption_algorithm(algorithm))

    def with_encryption_key(self, key: KeyType | None) -> KeycloakProvider:
        return self.with_config(self._config.with_encryption_key(key))

    def with_encryption_key_path(self, path: str | Path) -> KeycloakProvider:
        return self.with_config(self._config.with_encryption_key_path(path))

    # ---- Endpoints -------------------------------------------------------------------

    def get_base_authorization_url(self) -> str:
        return self._endpoints.authorization_url

    def get_base_access_token_url(self) -> str:
        return self._endpoints.token_url

    def get_resource_owner_details_url(self) -> str:
        return self._endpoints.userinfo_url

    def get_entitlements_url(self) -> str:
        return self._endpoints.entitlements_url

    def get_default_scopes(self) -> tuple[str, ...]:
        return self._config.scopes

    # ---- Grant flow ------------------------------------------------------------------

    def get_authorization_url(self, **kwargs: Any) -> tuple[str, str]:
        """Return ``(url, state)`` to redirect the user agent to."""
        if self._config.state and "state" not in kwargs:
            kwargs["state"] = self._config.state
        return self._session.create_authorization_url(self._endpoints.authorization_url, **kwargs)

    def get_access_token(
        self,
        code: str | None = None,
        *,
        authorization_response: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """
        Exchange an authorization code for a token and cache it.

        Pass either ``code`` or the full callback URL as
        ``authorization_response``. Any previously cached token is replaced and
        previously extracted roles are dropped.
        """
        if not code and not authorization_response:
            raise ValueError("code or authorization_response is required")

        params: dict[str, Any] = dict(kwargs)
        if code:
            params["code"] = code
        if authorization_response:
            params["authorization_response"] = authorization_response
        params.setdefault("timeout", self._config.timeout_seconds)

        logger.info("Exchanging authorization code realm=%s client_id=%s", self._config.realm, self._config.client_id)
        try:
            token = self._session.fetch_token(
                self._endpoints.token_url,
                grant_type="authorization_code",
                **params,
            )
        except AuthlibBaseError as e:
            body = {"error": e.error, "error_description": e.description}
            raise IdentityProviderError(f"{e.error}: {e.description or ''}", body) from e

        self._access_token = token
        self._keycloak_roles = None
        return token

    # ---- Authenticated requests ------------------------------------------------------

    def get_authorization_headers(self, token: Any = None) -> dict[str, str]:
        """Bearer header for ``token``; empty when there is no token value."""
        value = token_value(token)
        if not value:
            return {}
        return {"Authorization": f"Bearer {value}"}

    def get_authenticated_request(
        self,
        method: str,
        url: str,
        token: Any = None,
        **kwargs: Any,
    ) -> requests.Response:
        """
        Send ``method url`` with our bearer header (``token`` or the cached one).

        The session's own token handling is bypassed so that no header at all
        is sent when there is no token.
        """
        if token is None:
            token = self._access_token
        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(self.get_authorization_headers(token))
        kwargs.setdefault("timeout", self._config.timeout_seconds)
        return self._session.request(method, url, headers=headers, withhold_token=True, **kwargs)

    def get_parsed_response(self, method: str, url: str, token: Any = None, **kwargs: Any) -> Any:
        response = self.get_authenticated_request(method, url, token, **kwargs)
        data = parse_response(response)
        check_response(response.status_code, data)
        return data

    def decrypt_response(self, response: Any) -> Any:
        """Verify and decode ``response`` if it is a signed string; pass mappings through."""
        return decode_token(
            response,
            self._config.encryption_algorithm,
            self._config.encryption_key,
            leeway=self._config.clock_skew_seconds,
            key_source_error=self._config.key_source_error,
        )

    # ---- Resource owner --------------------------------------------------------------

    def fetch_resource_owner_details(self, token: Any = None) -> Any:
        logger.info("Fetching user info realm=%s", self._config.realm)
        return self.get_parsed_response("GET", self._endpoints.userinfo_url, token)

    def get_resource_owner(self, token: Any = None) -> KeycloakResourceOwner:
        claims = self.decrypt_response(self.fetch_resource_owner_details(token))
        if not isinstance(claims, Mapping):
            raise DecodingError("Invalid user info response: expected a JSON object")
        return KeycloakResourceOwner.from_claims(claims)

    # ---- Roles -----------------------------------------------------------------------

    def check_for_keycloak_roles(self) -> KeycloakRoles | None:
        """
        Extract roles from the cached access token.

        Leaves roles unset (None) when there is no token or no
        algorithm/key; that is not an error.
        """
        self._keycloak_roles = extract_roles(
            self._access_token,
            self._config.encryption_algorithm,
            self._config.encryption_key,
            leeway=self._config.clock_skew_seconds,
        )
        return self._keycloak_roles

    def get_keycloak_roles(self) -> KeycloakRoles | None:
        return self._keycloak_roles

    # ---- Entitlements ----------------------------------------------------------------

    def get_entitlements(self, token: Any = None) -> KeycloakEntitlements:
        """
        Return the user's entitlements for this client, fetched at most once.

        Calls the entitlement API, verifies the ``rpt`` it returns and caches
        the result on this instance. Use ``reset_entitlements()`` to refetch.
        """
        if self._keycloak_entitlements is not None:
            logger.debug("Entitlements served from cache client_id=%s", self._config.client_id)
            return self._keycloak_entitlements

        logger.info("Fetching entitlements realm=%s client_id=%s", self._config.realm, self._config.client_id)
        data = self.get_parsed_response("GET", self._endpoints.entitlements_url, token)
        rpt = data.get("rpt") if isinstance(data, Mapping) else None
        if not isinstance(rpt, str) or not rpt:
            raise DecodingError("Entitlement response has no 'rpt' token")

        claims = decode_token(
            rpt,
            self._config.encryption_algorithm,
            self._config.encryption_key,
            leeway=self._config.clock_skew_seconds,
            key_source_error=self._config.key_source_error,
        )
        self._keycloak_entitlements = KeycloakEntitlements.from_claims(claims)
        return self._keycloak_entitlements

    def reset_entitlements(self) -> None:
        self._keycloak_entitlements = None
