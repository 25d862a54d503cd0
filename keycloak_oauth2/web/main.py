from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager

from fastapi import FastAPI

from keycloak_oauth2.config import KeycloakConfig
from keycloak_oauth2.logging_config import configure_logging
from keycloak_oauth2.settings import get_settings

from . import routers


def create_app(config: KeycloakConfig | None = None, state_secret: str | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        settings = get_settings()
        configure_logging(settings.log_level)

        logger = logging.getLogger(__name__)
        logger.info("App startup beginning")

        if app.state.keycloak_config is None:
            app.state.keycloak_config = settings.keycloak_config()
        if state_secret is None and settings.state_secret:
            app.state.state_secret = settings.state_secret
        logger.info(
            "Loaded Keycloak config realm=%s client_id=%s",
            app.state.keycloak_config.realm,
            app.state.keycloak_config.client_id,
        )

        yield
        # Shutdown (providers are per request; nothing to clean up)

    app = FastAPI(lifespan=lifespan)
    app.state.keycloak_config = config
    # Per-process fallback: login state does not survive a restart or span workers.
    app.state.state_secret = state_secret or secrets.token_urlsafe(32)

    app.include_router(routers.router)

    return app


app = create_app()
