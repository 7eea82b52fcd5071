"""ASGI application factory and dependencies for the careledger server."""

from careledger.server.app import app, create_app

__all__ = ["app", "create_app"]
