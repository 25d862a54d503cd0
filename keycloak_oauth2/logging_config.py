from __future__ import annotations

import logging
import re

PACKAGE_LOGGER = "keycloak_oauth2"

# authlib and urllib3 log full request/response lines (tokens included) at DEBUG.
_CHATTY_LOGGERS = ("authlib", "urllib3")

_BEARER = re.compile(r"(Bearer\s+)\S+", re.IGNORECASE)
_JWT = re.compile(r"eyJ[\w-]*\.[\w-]+\.[\w-]*")
_MASK = "[redacted]"


def redact(text: str) -> str:
    """Mask bearer credentials and compact JWTs in ``text``."""
    return _JWT.sub(_MASK, _BEARER.sub(r"\1" + _MASK, text))


class RedactTokensFilter(logging.Filter):
    """Rewrite a record's message so no bearer token or JWT reaches a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """
    Logging setup for this package and the HTTP stack under it.

    Notes:
    - Plain stdlib logging; handlers are left to the host application (or uvicorn).
    - Set `KEYCLOAK_APP_LOG_LEVEL=DEBUG` (or INFO/WARNING/ERROR) to control verbosity.
    - authlib/urllib3 stay at WARNING unless DEBUG is requested.
    - Every root handler gets a `RedactTokensFilter`; calling this twice adds it once.
    """

    normalized = level.upper()
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(normalized)
    package_logger.propagate = True

    third_party_level = logging.DEBUG if normalized == "DEBUG" else logging.WARNING
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RedactTokensFilter) for f in handler.filters):
            handler.addFilter(RedactTokensFilter())
