"""
Provider profile API endpoints.

CRUD, duplication, reordering and connection tests for provider profiles.
API keys are masked in every response.
"""

from typing import Any, Dict, List

from core.dependencies import get_profile_service
from core.profile_service import ProviderProfileService
from domain.provider_profile import (
    CamelModel,
    ConnectionTestResult,
    CreateProviderProfileInput,
    ProviderProfile,
    ProviderProfileList,
    UpdateProviderProfileInput,
)
from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

router = APIRouter()


class ReorderRequest(CamelModel):
    ordered_ids: List[str]


@router.get("", response_model=ProviderProfileList)
async def list_profiles(service: ProviderProfileService = Depends(get_profile_service)):
    """List all profiles with the number of active profiles per type."""
    result = await service.list_profiles()
    return ProviderProfileList(
        profiles=[p.redacted() for p in result.profiles],
        active_count=result.active_count,
    )


@router.post("", response_model=ProviderProfile, status_code=201)
async def create_profile(
    data: CreateProviderProfileInput,
    service: ProviderProfileService = Depends(get_profile_service),
):
    """Create a profile. Internal base URLs are rejected unless allowInternalUrls is set."""
    profile = await service.create_profile(data)
    return profile.redacted()


@router.post("/test", response_model=ConnectionTestResult)
async def test_unsaved_profile(
    data: CreateProviderProfileInput,
    service: ProviderProfileService = Depends(get_profile_service),
):
    """Test a profile before saving it."""
    return await service.test_profile_input(data)


@router.post("/reorder", response_model=List[ProviderProfile])
async def reorder_profiles(
    data: ReorderRequest,
    service: ProviderProfileService = Depends(get_profile_service),
):
    """Set priorities from an ordered list of ids (first = highest)."""
    profiles = await service.reorder_profiles(data.ordered_ids)
    return [p.redacted() for p in profiles]


@router.get("/{profile_id}", response_model=ProviderProfile)
async def get_profile(profile_id: str, service: ProviderProfileService = Depends(get_profile_service)):
    profile = await service.get_profile(profile_id)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"Provider profile not found: {profile_id}")
    return profile.redacted()


@router.patch("/{profile_id}", response_model=ProviderProfile)
async def update_profile(
    profile_id: str,
    changes: Dict[str, Any] = Body(...),
    service: ProviderProfileService = Depends(get_profile_service),
):
    """Partially update a profile. Omitted fields are left unchanged."""
    try:
        data = UpdateProviderProfileInput.model_validate({**changes, "id": profile_id})
    except ValidationError as e:
        raise RequestValidationError(e.errors()) from e
    profile = await service.update_profile(data)
    return profile.redacted()


@router.delete("/{profile_id}")
async def delete_profile(profile_id: str, service: ProviderProfileService = Depends(get_profile_service)):
    await service.delete_profile(profile_id)
    return {"success": True}


@router.post("/{profile_id}/duplicate", response_model=ProviderProfile, status_code=201)
async def duplicate_profile(profile_id: str, service: ProviderProfileService = Depends(get_profile_service)):
    """Copy a profile. The copy starts inactive."""
    profile = await service.duplicate_profile(profile_id)
    return profile.redacted()


@router.post("/{profile_id}/test", response_model=ConnectionTestResult)
async def test_profile(profile_id: str, service: ProviderProfileService = Depends(get_profile_service)):
    """Test a stored profile and cache the result on it."""
    result = await service.test_connection(profile_id)
    await service.save_connection_test_result(profile_id, result)
    return result
