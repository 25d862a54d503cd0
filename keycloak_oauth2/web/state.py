"""
OAuth2 ``state`` kept in a signed, short-lived cookie between /login and /callback.

The cookie value is an HS256 JWT over ``{"state": ..., "exp": ...}`` signed with
the app's state secret, so it cannot be forged or replayed after it expires.
"""

from __future__ import annotations

import hmac
import logging
import time

import jwt
from fastapi import HTTPException, Request, Response, status

logger = logging.getLogger(__name__)

STATE_COOKIE = "keycloak_oauth_state"
STATE_TTL_SECONDS = 600
_ALGORITHM = "HS256"


def get_state_secret(request: Request) -> str:
    secret = getattr(request.app.state, "state_secret", None)
    if not secret:
        raise RuntimeError("State secret not configured. Did create_app run?")
    return secret


def issue_state_cookie(response: Response, state: str, secret: str, *, secure: bool = False) -> None:
    value = jwt.encode(
        {"state": state, "exp": int(time.time()) + STATE_TTL_SECONDS},
        secret,
        algorithm=_ALGORITHM,
    )
    response.set_cookie(
        STATE_COOKIE,
        value,
        max_age=STATE_TTL_SECONDS,
        httponly=True,
        secure=secure,
        # lax: the cookie must survive the top-level redirect back from Keycloak.
        samesite="lax",
    )


def verify_state(request: Request, state: str | None, secret: str) -> None:
    """400 unless ``state`` matches the value signed into the state cookie."""
    if not state:
        logger.warning("Callback without state parameter")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing state parameter")

    cookie = request.cookies.get(STATE_COOKIE)
    if not cookie:
        logger.warning("Callback without state cookie")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing login state")

    try:
        expected = jwt.decode(cookie, secret, algorithms=[_ALGORITHM]).get("state")
    except jwt.PyJWTError as exc:
        logger.warning("Invalid state cookie: %s", type(exc).__name__)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid login state") from exc

    if not isinstance(expected, str) or not hmac.compare_digest(expected, state):
        logger.warning("State mismatch on callback")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="State mismatch")


def clear_state_cookie(response: Response) -> None:
    response.delete_cookie(STATE_COOKIE)
