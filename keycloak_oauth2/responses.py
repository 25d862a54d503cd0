"""Parse provider HTTP responses and turn error bodies into exceptions."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qsl

import requests

from .exceptions import IdentityProviderError, TransportError

logger = logging.getLogger(__name__)


def parse_response(response: requests.Response) -> Any:
    """
    Return the parsed body of ``response``.

    JSON bodies become dicts/lists, form-encoded bodies become dicts. Any other
    body is returned as text (Keycloak may answer with a bare signed JWT).
    """
    content_type = response.headers.get("Content-Type", "")
    if "urlencoded" in content_type:
        return dict(parse_qsl(response.text))
    try:
        return response.json()
    except ValueError as e:
        if "json" in content_type:
            raise TransportError(
                f"Invalid JSON received from identity provider (status={response.status_code})"
            ) from e
        return response.text


def check_response(status_code: int, data: Any) -> None:
    """
    Raise IdentityProviderError if ``data`` carries an ``error`` or the status is 4xx/5xx.

    The error message is ``"<error>: <error_description>"``.
    """
    if isinstance(data, Mapping) and data.get("error"):
        description = data.get("error_description") or ""
        logger.info("Identity provider error status=%s error=%s", status_code, data["error"])
        raise IdentityProviderError(f"{data['error']}: {description}", data, status_code)
    if status_code >= 400:
        logger.info("Identity provider returned status=%s", status_code)
        raise IdentityProviderError(f"HTTP {status_code}", data, status_code)
