"""
FastAPI dependencies.

Long-lived objects are created by the app factory and stored on
``app.state``; routers reach them through these functions.
"""

from fastapi import HTTPException, Request
from providers.fallback import FallbackExecutor
from providers.registry import ProviderRegistry

from core.profile_service import ProviderProfileService


def _from_state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=500, detail=f"{name} not configured")
    return value


def get_registry(request: Request) -> ProviderRegistry:
    """Get the ProviderRegistry from app state."""
    return _from_state(request, "provider_registry")


def get_profile_service(request: Request) -> ProviderProfileService:
    """Get the ProviderProfileService from app state."""
    return _from_state(request, "profile_service")


def get_fallback_executor(request: Request) -> FallbackExecutor:
    """Get the FallbackExecutor from app state."""
    return _from_state(request, "fallback_executor")
