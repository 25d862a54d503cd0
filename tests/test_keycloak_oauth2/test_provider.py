"""Tests for KeycloakProvider (HTTP session mocked)."""

from dataclasses import replace
from urllib.parse import parse_qs, urlsplit

import pytest
import requests
from authlib.integrations.base_client import OAuthError

from keycloak_oauth2.config import KeycloakConfig
from keycloak_oauth2.entitlements import KeycloakEntitlements
from keycloak_oauth2.exceptions import (
    DecodingError,
    EncryptionConfigurationError,
    IdentityProviderError,
)
from keycloak_oauth2.provider import KeycloakProvider

ROLE_CLAIMS = {
    "realm_access": {"roles": ["user"]},
    "resource_access": {"app": {"roles": ["editor"]}},
}

RPT_CLAIMS = {
    "authorization": {"permissions": [{"rsid": "r-1", "rsname": "Orders", "scopes": ["view"]}]},
}


def _token(value: str) -> dict:
    return {"access_token": value, "token_type": "Bearer", "expires_in": 300, "expires_at": 9999999999}


def test_end_to_end_plain_configuration():
    config = KeycloakConfig(auth_server_url="https://id.example.com", realm="r1", client_id="c1")
    provider = KeycloakProvider(config)
    assert provider.get_base_authorization_url() == "https://id.example.com/realms/r1/protocol/openid-connect/auth"
    claims = {"sub": "u", "email": "u@example.com"}
    assert provider.decrypt_response(claims) is claims


def test_endpoint_accessors(config, session):
    provider = KeycloakProvider(config, session=session)
    base = "http://localhost:8080/auth/realms/demo"
    assert provider.get_base_access_token_url() == base + "/protocol/openid-connect/token"
    assert provider.get_resource_owner_details_url() == base + "/protocol/openid-connect/userinfo"
    assert provider.get_entitlements_url() == base + "/authz/entitlement/app"
    assert provider.get_default_scopes() == ("name", "email")


def test_authorization_url_uses_real_oauth2_session(config):
    url, state = KeycloakProvider(config).get_authorization_url()
    parts = urlsplit(url)
    assert f"{parts.scheme}://{parts.netloc}{parts.path}" == config.endpoints.authorization_url
    query = parse_qs(parts.query)
    assert query["response_type"] == ["code"]
    assert query["client_id"] == ["app"]
    assert query["redirect_uri"] == ["http://localhost:8000/callback"]
    assert query["scope"] == ["name email"]
    assert query["state"] == [state]


def test_authorization_url_uses_configured_state(config, session):
    session.create_authorization_url.return_value = ("https://kc/auth?x", "fixed")
    provider = KeycloakProvider(replace(config, state="fixed"), session=session)
    assert provider.get_authorization_url() == ("https://kc/auth?x", "fixed")
    session.create_authorization_url.assert_called_once_with(config.endpoints.authorization_url, state="fixed")


def test_get_access_token_caches_latest(config, session):
    session.fetch_token.side_effect = [_token("first"), _token("second")]
    provider = KeycloakProvider(config, session=session)
    assert provider.access_token is None

    provider.get_access_token("code-1")
    provider.get_access_token("code-2")

    assert provider.access_token["access_token"] == "second"
    args, kwargs = session.fetch_token.call_args
    assert args == (config.endpoints.token_url,)
    assert kwargs["code"] == "code-2"
    assert kwargs["grant_type"] == "authorization_code"
    assert kwargs["timeout"] == 10


def test_get_access_token_from_callback_url(config, session):
    session.fetch_token.return_value = _token("t")
    provider = KeycloakProvider(config, session=session)
    provider.get_access_token(authorization_response="http://localhost:8000/callback?code=abc&state=s")
    kwargs = session.fetch_token.call_args.kwargs
    assert kwargs["authorization_response"].endswith("code=abc&state=s")
    assert "code" not in kwargs


def test_get_access_token_requires_code(config, session):
    with pytest.raises(ValueError):
        KeycloakProvider(config, session=session).get_access_token()


def test_get_access_token_maps_oauth_error(config, session):
    session.fetch_token.side_effect = OAuthError(error="invalid_grant", description="bad code")
    provider = KeycloakProvider(config, session=session)
    with pytest.raises(IdentityProviderError) as exc_info:
        provider.get_access_token("bad")
    assert str(exc_info.value) == "invalid_grant: bad code"
    assert exc_info.value.response_body == {"error": "invalid_grant", "error_description": "bad code"}
    assert provider.access_token is None


def test_transport_errors_propagate_unchanged(config, session):
    session.fetch_token.side_effect = requests.ConnectionError("refused")
    with pytest.raises(requests.ConnectionError):
        KeycloakProvider(config, session=session).get_access_token("code")


@pytest.mark.parametrize("token", [None, "", "   ", {"access_token": ""}, {"access_token": " \t"}, {"access_token": None}, {}])
def test_no_bearer_header_without_token_value(config, session, token):
    provider = KeycloakProvider(config, session=session)
    assert provider.get_authorization_headers(token) == {}


def test_bearer_header_for_token(config, session):
    provider = KeycloakProvider(config, session=session)
    assert provider.get_authorization_headers("abc") == {"Authorization": "Bearer abc"}
    assert provider.get_authorization_headers(_token("abc")) == {"Authorization": "Bearer abc"}


def test_authenticated_request_without_token_sends_no_authorization(config, session, response):
    session.request.return_value = response(200, {"sub": "u"})
    provider = KeycloakProvider(config, session=session)
    provider.get_authenticated_request("GET", "http://kc/x", headers={"Accept": "application/json"})
    args, kwargs = session.request.call_args
    assert args == ("GET", "http://kc/x")
    assert kwargs["headers"] == {"Accept": "application/json"}
    assert kwargs["withhold_token"] is True
    assert kwargs["timeout"] == 10


def test_authenticated_request_uses_cached_token(config, session, response):
    session.fetch_token.return_value = _token("cached")
    session.request.return_value = response(200, {})
    provider = KeycloakProvider(config, session=session)
    provider.get_access_token("code")
    provider.get_authenticated_request("GET", "http://kc/x")
    assert session.request.call_args.kwargs["headers"] == {"Authorization": "Bearer cached"}


def test_get_resource_owner_plain_json(config, session, response):
    session.request.return_value = response(200, {"sub": "u-1", "name": "Jane", "email": "jane@example.com"})
    owner = KeycloakProvider(config, session=session).get_resource_owner("tok")
    assert owner.id == "u-1"
    assert owner.name == "Jane"
    assert owner.email == "jane@example.com"
    assert session.request.call_args.args == ("GET", config.endpoints.userinfo_url)
    assert session.request.call_args.kwargs["headers"] == {"Authorization": "Bearer tok"}


def test_get_resource_owner_signed(signed_config, session, response, make_token):
    signed = make_token({"sub": "u-2", "email": "s@example.com"})
    session.request.return_value = response(200, signed, content_type="application/jwt")
    owner = KeycloakProvider(signed_config, session=session).get_resource_owner("tok")
    assert owner.id == "u-2"
    assert owner.email == "s@example.com"


def test_get_resource_owner_signed_without_configuration(config, session, response, make_token):
    session.request.return_value = response(200, make_token(), content_type="application/jwt")
    with pytest.raises(EncryptionConfigurationError):
        KeycloakProvider(config, session=session).get_resource_owner("tok")


def test_get_resource_owner_error_body(config, session, response):
    session.request.return_value = response(401, {"error": "invalid_token", "error_description": "expired"})
    with pytest.raises(IdentityProviderError, match="invalid_token: expired"):
        KeycloakProvider(config, session=session).get_resource_owner("tok")


def test_get_resource_owner_rejects_non_object(config, session, response):
    session.request.return_value = response(200, ["not", "an", "object"])
    with pytest.raises(DecodingError):
        KeycloakProvider(config, session=session).get_resource_owner("tok")


def test_roles_after_token_exchange(signed_config, session, make_token):
    session.fetch_token.return_value = _token(make_token(ROLE_CLAIMS))
    provider = KeycloakProvider(signed_config, session=session)
    assert provider.get_keycloak_roles() is None

    provider.get_access_token("code")
    roles = provider.check_for_keycloak_roles()

    assert roles is provider.get_keycloak_roles()
    assert roles.has_realm_role("user")
    assert roles.has_resource_role("app", "editor")


def test_roles_absent_without_configuration(config, session, make_token):
    session.fetch_token.return_value = _token(make_token(ROLE_CLAIMS))
    provider = KeycloakProvider(config, session=session)
    provider.get_access_token("code")
    assert provider.check_for_keycloak_roles() is None
    assert provider.get_keycloak_roles() is None


def test_roles_absent_before_token(signed_config, session):
    assert KeycloakProvider(signed_config, session=session).check_for_keycloak_roles() is None


def test_new_token_drops_previous_roles(signed_config, session, make_token):
    session.fetch_token.side_effect = [_token(make_token(ROLE_CLAIMS)), _token(make_token())]
    provider = KeycloakProvider(signed_config, session=session)
    provider.get_access_token("code-1")
    provider.check_for_keycloak_roles()
    provider.get_access_token("code-2")
    assert provider.get_keycloak_roles() is None


def test_entitlements_fetched_once(signed_config, session, response, make_token):
    session.request.return_value = response(200, {"rpt": make_token(RPT_CLAIMS)})
    provider = KeycloakProvider(signed_config, session=session)

    first = provider.get_entitlements("tok")
    second = provider.get_entitlements("tok")
    third = provider.get_entitlements()

    assert isinstance(first, KeycloakEntitlements)
    assert first is second is third
    assert first.has_scope("Orders", "view")
    assert session.request.call_count == 1
    args, kwargs = session.request.call_args
    assert args == ("GET", signed_config.endpoints.entitlements_url)
    assert kwargs["headers"] == {"Authorization": "Bearer tok"}


def test_reset_entitlements_refetches(signed_config, session, response, make_token):
    session.request.return_value = response(200, {"rpt": make_token(RPT_CLAIMS)})
    provider = KeycloakProvider(signed_config, session=session)
    provider.get_entitlements("tok")
    provider.reset_entitlements()
    provider.get_entitlements("tok")
    assert session.request.call_count == 2


@pytest.mark.parametrize("body", [{}, {"rpt": ""}, {"rpt": 5}, "plain text"])
def test_entitlements_missing_rpt(signed_config, session, response, body):
    session.request.return_value = response(200, body, content_type="text/plain")
    with pytest.raises(DecodingError):
        KeycloakProvider(signed_config, session=session).get_entitlements("tok")


def test_entitlements_require_decoding_configuration(config, session, response, make_token):
    session.request.return_value = response(200, {"rpt": make_token(RPT_CLAIMS)})
    provider = KeycloakProvider(config, session=session)
    with pytest.raises(EncryptionConfigurationError):
        provider.get_entitlements("tok")


def test_entitlements_tampered_rpt(signed_config, session, response):
    session.request.return_value = response(200, {"rpt": "a.b.c"})
    with pytest.raises(DecodingError):
        KeycloakProvider(signed_config, session=session).get_entitlements("tok")


def test_entitlements_error_is_not_cached(signed_config, session, response, make_token):
    session.request.side_effect = [
        response(403, {"error": "access_denied", "error_description": "not authorized"}),
        response(200, {"rpt": make_token(RPT_CLAIMS)}),
    ]
    provider = KeycloakProvider(signed_config, session=session)
    with pytest.raises(IdentityProviderError) as exc_info:
        provider.get_entitlements("tok")
    assert exc_info.value.status_code == 403
    assert provider.get_entitlements("tok").has_resource("Orders")


def test_entitlements_with_rs256(config, session, response, rsa_keys):
    import jwt

    private_key, public_pem = rsa_keys
    rpt = jwt.encode(RPT_CLAIMS, private_key, algorithm="RS256")
    session.request.return_value = response(200, {"rpt": rpt})
    provider = KeycloakProvider(config, session=session).with_encryption_algorithm("RS256").with_encryption_key(public_pem)
    assert provider.get_entitlements("tok").resource_names() == ("Orders",)


def test_builders_return_new_provider(config, session, secret):
    provider = KeycloakProvider(config, session=session)
    updated = provider.with_encryption_algorithm("HS256").with_encryption_key(secret)
    assert updated is not provider
    assert provider.config.encryption_algorithm is None
    assert updated.config.can_decode is True


def test_unreadable_key_path_fails_on_decode(config, session, response, make_token, tmp_path):
    provider = KeycloakProvider(config, session=session).with_encryption_algorithm("HS256")
    provider = provider.with_encryption_key_path(tmp_path / "missing.pem")
    session.request.return_value = response(200, make_token(), content_type="application/jwt")
    with pytest.raises(EncryptionConfigurationError, match="could not be read"):
        provider.get_resource_owner("tok")


def test_with_config_shares_session_with_fresh_caches(signed_config, session, response, make_token):
    session.fetch_token.return_value = _token(make_token(ROLE_CLAIMS))
    session.request.return_value = response(200, {"rpt": make_token(RPT_CLAIMS)})
    provider = KeycloakProvider(signed_config, session=session)
    provider.get_access_token("code")
    provider.check_for_keycloak_roles()
    provider.get_entitlements()

    updated = provider.with_config(replace(signed_config, timeout_seconds=3))

    assert updated is not provider
    assert updated._session is session
    assert updated.config.timeout_seconds == 3
    assert updated.access_token is None
    assert updated.get_keycloak_roles() is None
    updated.get_entitlements("tok")
    assert session.request.call_count == 2
    assert session.request.call_args.kwargs["timeout"] == 3
    assert provider.get_entitlements() is not updated.get_entitlements()


def test_whitespace_token_sends_no_authorization(config, session, response):
    session.request.return_value = response(200, {"sub": "u"})
    KeycloakProvider(config, session=session).get_authenticated_request("GET", "http://kc/x", token="   ")
    assert "Authorization" not in session.request.call_args.kwargs["headers"]
