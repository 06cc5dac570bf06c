"""
Application factory for creating FastAPI app instances.

This module wires the provider registry, the profile service and the
fallback executor into a FastAPI application and registers the routers.
"""

from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from providers.factory import register_default_providers
from providers.fallback import FallbackExecutor
from providers.registry import ProviderRegistry

from core import get_logger, get_settings
from core.exceptions import ConfigurationError, ErrorKind, ProviderError
from core.profile_service import ProviderProfileService
from core.settings_store import InMemorySettingsStore, SettingsStore

logger = get_logger("AppFactory")

# HTTP status returned for provider errors raised outside a stream
_STATUS_BY_KIND = {
    ErrorKind.CONFIGURATION: 400,
    ErrorKind.AUTH: 502,
    ErrorKind.RATE_LIMIT: 429,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.CANCELLED: 499,
}


def create_app(
    settings_store: Optional[SettingsStore] = None,
    registry: Optional[ProviderRegistry] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings_store: Profile persistence collaborator (in-memory if omitted)
        registry: Provider registry (built-in providers registered if omitted)
        http_transport: Optional httpx transport for outbound calls (tests)

    Returns:
        Configured FastAPI application instance
    """
    from middleware import CorrelationIdMiddleware
    from routers import provider_profiles, providers, query

    settings = get_settings()

    if settings_store is None:
        logger.info("No settings store supplied, profiles are kept in memory")
        settings_store = InMemorySettingsStore()
    if registry is None:
        registry = register_default_providers(ProviderRegistry())

    app = FastAPI(title="Provider Router API")

    # Store in app state for dependency injection
    app.state.provider_registry = registry
    app.state.profile_service = ProviderProfileService(settings_store, http_transport=http_transport)
    app.state.fallback_executor = FallbackExecutor(registry, http_transport=http_transport)

    @app.exception_handler(ProviderError)
    async def provider_error_handler(request: Request, exc: ProviderError):
        status_code = _STATUS_BY_KIND.get(exc.kind, 502)
        if isinstance(exc, ConfigurationError) and exc.message.startswith("Provider profile not found"):
            status_code = 404
        logger.warning(f"{request.method} {request.url.path} failed: {exc.kind.value}: {exc.message}")
        return JSONResponse(status_code=status_code, content={"detail": exc.message, "error": exc.to_dict()})

    # Add correlation ID middleware for request tracking
    app.add_middleware(CorrelationIdMiddleware)

    # CORS middleware added LAST (processes requests FIRST in Starlette)
    allowed_origins = settings.get_cors_origins()
    logger.info(f"CORS allowed origins: {allowed_origins}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routers
    app.include_router(provider_profiles.router, prefix="/api/provider-profiles", tags=["Provider Profiles"])
    app.include_router(providers.router, prefix="/api/providers", tags=["Providers"])
    app.include_router(query.router, prefix="/api/query", tags=["Query"])

    return app
