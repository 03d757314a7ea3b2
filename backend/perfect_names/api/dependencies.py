"""FastAPI dependencies."""

from fastapi import Request

from perfect_names.services.resolver import NameResolutionService, ResolutionContext


def get_resolution_context(request: Request) -> ResolutionContext:
    """Context built in ``create_app`` and stored on the application."""
    return request.app.state.resolution


def get_resolution_service(request: Request) -> NameResolutionService:
    return get_resolution_context(request).service
