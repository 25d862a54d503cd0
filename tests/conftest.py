"""
Pytest fixtures for the test suite.

Tokens are minted for real with PyJWT (HS256 shared secret or a throwaway RSA
key pair); the HTTP session is a MagicMock so no test touches the network.
"""
from __future__ import annotations

import json
import time
from unittest.mock import MagicMock

import jwt
import pytest

from keycloak_oauth2.config import KeycloakConfig

# Long enough to avoid PyJWT's short HMAC key warning.
SECRET = "x" * 32


@pytest.fixture
def secret() -> str:
    return SECRET


@pytest.fixture
def config() -> KeycloakConfig:
    """Provider config without any decoding configuration."""
    return KeycloakConfig(
        auth_server_url="http://localhost:8080/auth",
        realm="demo",
        client_id="app",
        client_secret="client-secret",
        redirect_uri="http://localhost:8000/callback",
    )


@pytest.fixture
def signed_config(config) -> KeycloakConfig:
    """Provider config able to verify HS256 payloads signed with SECRET."""
    return config.with_encryption_algorithm("HS256").with_encryption_key(SECRET)


@pytest.fixture
def make_token(secret):
    """Return a function signing a claim map with HS256 (exp defaults to +5 min)."""

    def _make(claims: dict | None = None, **extra) -> str:
        payload = {"sub": "user-1", "exp": int(time.time()) + 300}
        payload.update(claims or {})
        payload.update(extra)
        return jwt.encode(payload, secret, algorithm="HS256")

    return _make


@pytest.fixture
def rsa_keys():
    """(private_key, public_pem) for RS256 tests."""
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return private_key, public_pem


def http_response(status_code: int = 200, body=None, *, content_type: str = "application/json") -> MagicMock:
    """Fake requests.Response; a str body is served as text with a non-JSON json()."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.headers = {"Content-Type": content_type}
    if isinstance(body, str):
        resp.text = body
        resp.json.side_effect = ValueError("not json")
    else:
        resp.text = json.dumps(body)
        resp.json.return_value = body
    return resp


@pytest.fixture
def response():
    return http_response


@pytest.fixture
def session():
    """Stand-in for authlib's OAuth2Session."""
    return MagicMock()
