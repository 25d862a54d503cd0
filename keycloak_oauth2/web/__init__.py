"""FastAPI demo app driving the Keycloak authorization code flow."""

from .main import create_app

__all__ = ["create_app"]
