"""
FastAPI dependencies that hand application-scoped objects to handlers.

Everything here reads from ``request.app.state``, which ``create_app``
fills in once at construction time.  Tests swap collaborators either by
passing them to ``create_app`` or through ``app.dependency_overrides``.
"""
from fastapi import Request

from commentboard.config import Settings
from commentboard.identity import RandomUserClient


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_identity_provider(request: Request) -> RandomUserClient:
    return request.app.state.identity_provider
