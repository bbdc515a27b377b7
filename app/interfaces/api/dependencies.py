"""FastAPI dependency utilities."""

from fastapi import Request

from app.config import Settings
from app.infrastructure.queue import DispatchQueue


def get_dispatch_queue(request: Request) -> DispatchQueue:
    """Return the dispatch queue attached to the running application."""

    return request.app.state.dispatch_queue


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
