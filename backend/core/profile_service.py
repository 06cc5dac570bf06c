"""
Provider profile service.

Handles CRUD operations for provider profiles, connection testing, and the
profile selection used for routing. Every read goes to the settings store;
nothing is cached between calls, so priority changes made elsewhere are
seen immediately.
"""

import logging
import time
import uuid
from typing import List, Optional

import httpx
from domain.provider_profile import (
    ConnectionTestResult,
    CreateProviderProfileInput,
    ProviderProfile,
    ProviderProfileList,
    ProviderProfileType,
    UpdateProviderProfileInput,
    utc_now_iso,
)
from domain.ssrf import validate_base_url_ssrf
from providers.cancellation import RequestGuard
from providers.profile_provider import tls_verify_for

from core.exceptions import ConfigurationError, ProviderTimeoutError
from core.settings import DEFAULT_RATE_LIMIT_RPM, get_settings
from core.settings_store import SettingsStore

logger = logging.getLogger("ProviderProfileService")

AUTH_FAILED_MESSAGE = "Authentication failed. Please check your API key."
ANTHROPIC_TEST_MODEL = "claude-3-haiku-20240307"
ANTHROPIC_VERSION = "2023-06-01"
UNEXPECTED_BODY_CHARS = 200


def _sorted_by_priority(profiles: List[ProviderProfile]) -> List[ProviderProfile]:
    # Stable: equal priorities keep their stored order
    return sorted(profiles, key=lambda p: -p.priority)


class ProviderProfileService:
    """Manages configurable API provider profiles.

    Args:
        store: Settings collaborator holding the profile list
        http_transport: Optional httpx transport for connection tests (tests)
    """

    def __init__(self, store: SettingsStore, http_transport: Optional[httpx.AsyncBaseTransport] = None):
        self._store = store
        self._http_transport = http_transport

    async def _load(self) -> List[ProviderProfile]:
        settings = await self._store.get_global_settings()
        return list(settings.provider_profiles)

    async def _save(self, profiles: List[ProviderProfile]) -> None:
        await self._store.update_global_settings({"providerProfiles": [p.to_record() for p in profiles]})

    # ========================================================================
    # CRUD
    # ========================================================================

    async def list_profiles(self) -> ProviderProfileList:
        """All profiles plus the number of active profiles per type."""
        profiles = await self._load()
        active_count = {
            profile_type.value: sum(1 for p in profiles if p.type == profile_type and p.is_active)
            for profile_type in ProviderProfileType
        }
        return ProviderProfileList(profiles=profiles, active_count=active_count)

    async def get_profile(self, profile_id: str) -> Optional[ProviderProfile]:
        profiles = await self._load()
        return next((p for p in profiles if p.id == profile_id), None)

    async def create_profile(self, data: CreateProviderProfileInput) -> ProviderProfile:
        """Create a profile after validating its base URL.

        Raises:
            ConfigurationError: The base URL failed SSRF validation
        """
        ssrf = validate_base_url_ssrf(data.base_url, bool(data.allow_internal_urls))
        if not ssrf.safe:
            raise ConfigurationError(f"Invalid base URL: {ssrf.reason}")

        profiles = await self._load()
        max_priority = max((p.priority for p in profiles), default=0)
        now = utc_now_iso()

        profile = ProviderProfile(
            id=str(uuid.uuid4()),
            name=data.name,
            type=data.type,
            base_url=data.base_url,
            api_key=data.api_key,
            model_mapping=list(data.model_mapping or []),
            is_active=data.is_active if data.is_active is not None else True,
            priority=data.priority if data.priority is not None else max_priority + 1,
            timeout=data.timeout if data.timeout is not None else get_settings().provider_timeout_ms,
            description=data.description,
            custom_ca_cert=data.custom_ca_cert,
            allow_internal_urls=bool(data.allow_internal_urls),
            rate_limit_rpm=data.rate_limit_rpm if data.rate_limit_rpm is not None else DEFAULT_RATE_LIMIT_RPM,
            created_at=now,
            updated_at=now,
        )

        await self._save([*profiles, profile])
        logger.info(f"Created provider profile: {profile.name} ({profile.type.value})")
        return profile

    async def update_profile(self, data: UpdateProviderProfileInput) -> ProviderProfile:
        """Apply a partial update. The base URL is re-validated only when it changes.

        Raises:
            ConfigurationError: Unknown profile id, or the new base URL is rejected
        """
        profiles = await self._load()
        index = next((i for i, p in enumerate(profiles) if p.id == data.id), None)
        if index is None:
            raise ConfigurationError(f"Provider profile not found: {data.id}", profile_id=data.id)

        existing = profiles[index]
        changes = data.model_dump(exclude_none=True, exclude={"id"})

        if data.base_url and data.base_url != existing.base_url:
            allow_internal = (
                data.allow_internal_urls if data.allow_internal_urls is not None else existing.allow_internal_urls
            )
            ssrf = validate_base_url_ssrf(data.base_url, allow_internal)
            if not ssrf.safe:
                raise ConfigurationError(f"Invalid base URL: {ssrf.reason}", profile_id=data.id)

        updated = ProviderProfile.model_validate({**existing.model_dump(), **changes, "updated_at": utc_now_iso()})
        profiles[index] = updated

        await self._save(profiles)
        logger.info(f"Updated provider profile: {updated.name}")
        return updated

    async def delete_profile(self, profile_id: str) -> None:
        """Raises ConfigurationError if the profile does not exist."""
        profiles = await self._load()
        profile = next((p for p in profiles if p.id == profile_id), None)
        if profile is None:
            raise ConfigurationError(f"Provider profile not found: {profile_id}", profile_id=profile_id)

        await self._save([p for p in profiles if p.id != profile_id])
        logger.info(f"Deleted provider profile: {profile.name}")

    async def duplicate_profile(self, profile_id: str) -> ProviderProfile:
        """Copy a profile. The copy starts inactive and gets the next priority."""
        profile = await self.get_profile(profile_id)
        if profile is None:
            raise ConfigurationError(f"Provider profile not found: {profile_id}", profile_id=profile_id)

        return await self.create_profile(
            CreateProviderProfileInput(
                name=f"{profile.name} (Copy)",
                type=profile.type,
                base_url=profile.base_url,
                api_key=profile.api_key,
                model_mapping=[entry.model_copy() for entry in profile.model_mapping],
                is_active=False,
                timeout=profile.timeout,
                description=profile.description,
                custom_ca_cert=profile.custom_ca_cert,
                allow_internal_urls=profile.allow_internal_urls,
                rate_limit_rpm=profile.rate_limit_rpm,
            )
        )

    async def reorder_profiles(self, ordered_ids: List[str]) -> List[ProviderProfile]:
        """Assign priorities from a list of ids (first id = highest priority).

        Profiles missing from ``ordered_ids`` keep their priority. The stored
        list is re-sorted by descending priority.
        """
        profiles = await self._load()
        positions = {profile_id: i for i, profile_id in reversed(list(enumerate(ordered_ids)))}
        now = utc_now_iso()

        reordered = []
        for profile in profiles:
            position = positions.get(profile.id)
            if position is None:
                reordered.append(profile)
            else:
                reordered.append(profile.model_copy(update={"priority": len(ordered_ids) - position, "updated_at": now}))

        reordered = _sorted_by_priority(reordered)
        await self._save(reordered)
        logger.info(f"Reordered {len(ordered_ids)} provider profiles")
        return reordered

    # ========================================================================
    # Connection testing
    # ========================================================================

    async def test_connection(self, profile_id: str) -> ConnectionTestResult:
        """Test a stored profile. Never raises."""
        profile = await self.get_profile(profile_id)
        if profile is None:
            return ConnectionTestResult(success=False, error=f"Profile not found: {profile_id}")
        return await self.test_profile_connection(profile)

    async def test_profile_input(self, data: CreateProviderProfileInput) -> ConnectionTestResult:
        """Test an unsaved profile. The base URL must pass SSRF validation first."""
        ssrf = validate_base_url_ssrf(data.base_url, bool(data.allow_internal_urls))
        if not ssrf.safe:
            return ConnectionTestResult(success=False, error=f"Invalid base URL: {ssrf.reason}")

        profile = ProviderProfile(
            id="unsaved",
            name=data.name,
            type=data.type,
            base_url=data.base_url,
            api_key=data.api_key,
            timeout=data.timeout if data.timeout is not None else get_settings().provider_timeout_ms,
            custom_ca_cert=data.custom_ca_cert,
            allow_internal_urls=bool(data.allow_internal_urls),
        )
        return await self.test_profile_connection(profile)

    async def test_profile_connection(self, profile: ProviderProfile) -> ConnectionTestResult:
        """Probe a profile endpoint once.

        anthropic-compatible: POST /v1/messages with a 1-token request;
        200/400/404 mean reachable. openai-compatible: GET /v1/models; 200 is
        success and the model ids are harvested. 401/403 is an auth failure
        for both. Bounded by the profile timeout. Never raises.
        """
        started = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        try:
            guard = RequestGuard(timeout_ms=profile.timeout)
            result = await guard.run(self._probe(profile))
            result.response_time_ms = elapsed_ms()
            return result
        except ProviderTimeoutError:
            return ConnectionTestResult(
                success=False,
                error=f"Connection timeout after {profile.timeout}ms",
                response_time_ms=elapsed_ms(),
            )
        except Exception as e:
            logger.info(f"Connection test failed for {profile.name}: {e}")
            return ConnectionTestResult(success=False, error=str(e) or type(e).__name__, response_time_ms=elapsed_ms())

    async def _probe(self, profile: ProviderProfile) -> ConnectionTestResult:
        base_url = profile.base_url.rstrip("/")
        verify = tls_verify_for(profile)

        async with httpx.AsyncClient(transport=self._http_transport, verify=verify, timeout=None) as client:
            if profile.type == ProviderProfileType.ANTHROPIC_COMPATIBLE:
                response = await client.post(
                    f"{base_url}/v1/messages",
                    headers={"x-api-key": profile.api_key, "anthropic-version": ANTHROPIC_VERSION},
                    json={
                        "model": ANTHROPIC_TEST_MODEL,
                        "max_tokens": 1,
                        "messages": [{"role": "user", "content": "test"}],
                    },
                )
                if response.status_code in (401, 403):
                    return ConnectionTestResult(success=False, error=AUTH_FAILED_MESSAGE)
                # 400 and 404 still prove the endpoint answered and the key was accepted
                if response.is_success or response.status_code in (400, 404):
                    return ConnectionTestResult(success=True)
            else:
                response = await client.get(
                    f"{base_url}/v1/models",
                    headers={"Authorization": f"Bearer {profile.api_key}"},
                )
                if response.status_code in (401, 403):
                    return ConnectionTestResult(success=False, error=AUTH_FAILED_MESSAGE)
                if response.is_success:
                    return ConnectionTestResult(success=True, available_models=_harvest_model_ids(response))

            body = response.text[:UNEXPECTED_BODY_CHARS]
            error = f"Unexpected response: {response.status_code} {response.reason_phrase}"
            return ConnectionTestResult(success=False, error=f"{error} - {body}" if body else error)

    async def save_connection_test_result(self, profile_id: str, result: ConnectionTestResult) -> None:
        """Cache a test result on the profile. Unknown ids are ignored."""
        profiles = await self._load()
        index = next((i for i, p in enumerate(profiles) if p.id == profile_id), None)
        if index is None:
            return

        profiles[index] = profiles[index].model_copy(
            update={"last_connection_test": result, "updated_at": utc_now_iso()}
        )
        await self._save(profiles)

    # ========================================================================
    # Profile selection
    # ========================================================================

    async def get_active_profiles_by_type(self, profile_type: ProviderProfileType) -> List[ProviderProfile]:
        """Active profiles of a type, highest priority first."""
        profiles = await self._load()
        return _sorted_by_priority([p for p in profiles if p.type == profile_type and p.is_active])

    async def get_active_profile(self, profile_type: ProviderProfileType) -> Optional[ProviderProfile]:
        """The highest-priority active profile of a type."""
        active = await self.get_active_profiles_by_type(profile_type)
        return active[0] if active else None

    async def has_active_profiles(self, profile_type: ProviderProfileType) -> bool:
        return await self.get_active_profile(profile_type) is not None

    async def get_routing_profiles(self) -> List[ProviderProfile]:
        """All profiles sorted for the fallback executor (highest priority first)."""
        return _sorted_by_priority(await self._load())


def _harvest_model_ids(response: httpx.Response) -> Optional[List[str]]:
    try:
        data = response.json().get("data")
    except (ValueError, AttributeError):
        # Model list is optional; a reachable endpoint is still a success
        return None
    if not isinstance(data, list):
        return None
    return [item["id"] for item in data if isinstance(item, dict) and "id" in item]
