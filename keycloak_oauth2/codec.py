"""
Decode signed Keycloak payloads (user info, access token claims, RPT).

Background for newcomers:
    Keycloak can be configured to return the user-info document as a signed
    JWT instead of plain JSON, and the entitlement API always returns its
    permissions as a signed "requesting party token" (``rpt``). The same
    policy applies everywhere such a payload shows up:

    * already a dict  -> nothing to do, return it as is;
    * a string        -> verify with the configured algorithm + key;
    * a string but no algorithm or key configured -> fail loudly. We never
      hand back unverified claims.
"""

from __future__ import annotations

import logging
from typing import Any, Union

import jwt

from .exceptions import DecodingError, EncryptionConfigurationError

logger = logging.getLogger(__name__)

KeyType = Union[str, bytes]

_MISSING_CONFIGURATION = (
    "The given response may be encrypted and sufficient "
    "encryption configuration has not been provided."
)


def decode_token(
    raw: Any,
    algorithm: str | None = None,
    key: KeyType | None = None,
    *,
    leeway: int = 0,
    key_source_error: str | None = None,
) -> Any:
    """
    Return the claim map for ``raw``.

    Raises EncryptionConfigurationError when ``raw`` is an encoded string and
    ``algorithm`` or ``key`` is missing, and DecodingError when verification
    or parsing fails. ``key_source_error`` is the reason the key is missing
    (unreadable key file), if known.
    """
    if not isinstance(raw, str):
        return raw

    if not algorithm or not key:
        message = _MISSING_CONFIGURATION
        if key_source_error and not key:
            message = f"{message} Encryption key could not be read: {key_source_error}"
        raise EncryptionConfigurationError(message)

    try:
        claims = jwt.decode(
            raw,
            key,
            algorithms=[algorithm],
            leeway=leeway,
            # Keycloak picks its own audiences ("account", client ids); callers
            # that care check claims["aud"] themselves.
            options={"verify_aud": False},
        )
    except jwt.ExpiredSignatureError as e:
        logger.info("Signed payload expired")
        raise DecodingError("Token expired") from e
    except jwt.PyJWTError as e:
        logger.info("Signed payload rejected: %s", type(e).__name__)
        raise DecodingError(f"Invalid token: {type(e).__name__}") from e

    return claims
