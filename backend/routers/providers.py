"""
Providers API endpoints.

Provides endpoints for listing registered providers and their status, the
models they serve, and how a model id would be routed.
"""

from dataclasses import asdict

from core.dependencies import get_fallback_executor, get_profile_service, get_registry
from core.profile_service import ProviderProfileService
from core.settings import DEFAULT_PROVIDER_NAME
from fastapi import APIRouter, Depends, Query
from providers.fallback import FallbackExecutor
from providers.registry import ProviderRegistry

router = APIRouter()


@router.get("")
async def get_providers(registry: ProviderRegistry = Depends(get_registry)):
    """Get registered providers and their installation status.

    Returns:
        dict containing:
        - providers: List of provider objects with name, availability and status details
        - default: The default provider name
    """
    statuses = await registry.check_all_providers()
    return {
        "providers": [
            {"name": name, "available": status.installed, "status": asdict(status)}
            for name, status in statuses.items()
        ],
        "default": DEFAULT_PROVIDER_NAME,
    }


@router.get("/models")
async def get_models(
    registry: ProviderRegistry = Depends(get_registry),
    service: ProviderProfileService = Depends(get_profile_service),
    executor: FallbackExecutor = Depends(get_fallback_executor),
):
    """Models of every registered provider followed by those of active profiles."""
    models = registry.get_all_available_models()
    for profile in await service.get_routing_profiles():
        if profile.is_active:
            models.extend(executor.create_provider(profile).get_available_models())
    return {"models": [asdict(model) for model in models]}


@router.get("/resolve")
async def resolve_model(
    model: str = Query(..., description="Model id to route"),
    service: ProviderProfileService = Depends(get_profile_service),
    executor: FallbackExecutor = Depends(get_fallback_executor),
):
    """Show which provider a model id resolves to and its fallback chain."""
    chain = executor.build_fallback_chain(model, await service.get_routing_profiles())
    return {
        "model": model,
        "provider": executor.registry.resolve_provider_name(model),
        "chain": [provider.name for provider in chain],
    }
