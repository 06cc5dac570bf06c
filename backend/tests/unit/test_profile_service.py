"""
Tests for ProviderProfileService - profile CRUD, ordering and connection tests.
"""

import asyncio
import json

import httpx
import pytest
from core.exceptions import ConfigurationError
from core.profile_service import ProviderProfileService
from core.settings_store import InMemorySettingsStore
from domain.provider_profile import (
    CreateProviderProfileInput,
    ProviderProfileType,
    UpdateProviderProfileInput,
)

ANTHROPIC = ProviderProfileType.ANTHROPIC_COMPATIBLE
OPENAI = ProviderProfileType.OPENAI_COMPATIBLE


def create_input(**overrides) -> CreateProviderProfileInput:
    values = {
        "name": "Gateway",
        "type": OPENAI,
        "base_url": "https://gateway.example.com",
        "api_key": "sk-gateway-000000",
    }
    values.update(overrides)
    return CreateProviderProfileInput(**values)


@pytest.fixture
def store():
    return InMemorySettingsStore()


@pytest.fixture
def service(store):
    return ProviderProfileService(store)


def service_with(handler, store=None) -> ProviderProfileService:
    return ProviderProfileService(store or InMemorySettingsStore(), http_transport=httpx.MockTransport(handler))


class TestCreateProfile:
    """Tests for profile creation."""

    @pytest.mark.asyncio
    async def test_create_assigns_defaults(self, service, store):
        profile = await service.create_profile(create_input())

        assert profile.id
        assert profile.is_active is True
        assert profile.priority == 1
        assert profile.timeout == 30000
        assert profile.rate_limit_rpm == 0
        assert profile.created_at == profile.updated_at
        assert store.snapshot()["providerProfiles"][0]["baseUrl"] == "https://gateway.example.com"

    @pytest.mark.asyncio
    async def test_default_timeout_from_settings(self, service, monkeypatch):
        monkeypatch.setenv("PROVIDER_TIMEOUT_MS", "12000")

        profile = await service.create_profile(create_input())
        explicit = await service.create_profile(create_input(name="Explicit", timeout=900))

        assert profile.timeout == 12000
        assert explicit.timeout == 900

    @pytest.mark.asyncio
    async def test_priority_is_one_above_current_max(self, service):
        await service.create_profile(create_input(priority=7))

        second = await service.create_profile(create_input(name="Second"))

        assert second.priority == 8

    @pytest.mark.asyncio
    async def test_internal_url_rejected(self, service, store):
        """Test that a loopback base URL is rejected without the opt-in."""
        with pytest.raises(ConfigurationError, match="Internal/private addresses are not allowed: 127.0.0.1"):
            await service.create_profile(create_input(base_url="http://127.0.0.1:8080"))

        assert store.snapshot() == {}

    @pytest.mark.asyncio
    async def test_internal_url_allowed_with_opt_in(self, service):
        profile = await service.create_profile(create_input(base_url="http://127.0.0.1:8080", allow_internal_urls=True))

        assert profile.allow_internal_urls is True

    @pytest.mark.asyncio
    async def test_camel_case_store_records_are_read(self):
        store = InMemorySettingsStore(
            {
                "providerProfiles": [
                    {
                        "id": "x",
                        "name": "Stored",
                        "type": "anthropic-compatible",
                        "baseUrl": "https://a.example.com",
                        "apiKey": "k",
                        "modelMapping": [{"localModel": "a", "remoteModel": "b"}],
                    }
                ]
            }
        )

        profile = await ProviderProfileService(store).get_profile("x")

        assert profile.model_mapping[0].remote_model == "b"
        assert profile.type == ANTHROPIC


class TestUpdateProfile:
    """Tests for partial updates."""

    @pytest.mark.asyncio
    async def test_partial_update(self, service):
        created = await service.create_profile(create_input(description="old"))

        updated = await service.update_profile(UpdateProviderProfileInput(id=created.id, name="Renamed"))

        assert updated.name == "Renamed"
        assert updated.description == "old"
        assert updated.api_key == created.api_key
        assert (await service.get_profile(created.id)).name == "Renamed"

    @pytest.mark.asyncio
    async def test_update_model_mapping(self, service):
        created = await service.create_profile(create_input())

        updated = await service.update_profile(
            UpdateProviderProfileInput.model_validate(
                {"id": created.id, "modelMapping": [{"localModel": "fast", "remoteModel": "llama"}]}
            )
        )

        assert updated.model_mapping[0].local_model == "fast"

    @pytest.mark.asyncio
    async def test_new_base_url_is_validated(self, service):
        created = await service.create_profile(create_input())

        with pytest.raises(ConfigurationError, match="Invalid base URL"):
            await service.update_profile(UpdateProviderProfileInput(id=created.id, base_url="http://192.168.0.5"))

    @pytest.mark.asyncio
    async def test_unchanged_base_url_is_not_revalidated(self):
        """Test that an existing internal URL does not block unrelated edits."""
        store = InMemorySettingsStore(
            {
                "providerProfiles": [
                    {"id": "x", "name": "Lab", "type": "openai-compatible", "baseUrl": "http://10.0.0.2", "apiKey": "k"}
                ]
            }
        )
        service = ProviderProfileService(store)

        updated = await service.update_profile(UpdateProviderProfileInput(id="x", base_url="http://10.0.0.2", name="Lab 2"))

        assert updated.name == "Lab 2"

    @pytest.mark.asyncio
    async def test_unknown_profile(self, service):
        with pytest.raises(ConfigurationError, match="Provider profile not found: nope"):
            await service.update_profile(UpdateProviderProfileInput(id="nope", name="x"))


class TestDeleteDuplicateReorder:
    """Tests for delete, duplicate and reorder."""

    @pytest.mark.asyncio
    async def test_delete(self, service):
        created = await service.create_profile(create_input())

        await service.delete_profile(created.id)

        assert await service.get_profile(created.id) is None
        with pytest.raises(ConfigurationError):
            await service.delete_profile(created.id)

    @pytest.mark.asyncio
    async def test_duplicate(self, service):
        created = await service.create_profile(
            create_input(model_mapping=[{"local_model": "a", "remote_model": "b"}], timeout=1234)
        )

        copy = await service.duplicate_profile(created.id)

        assert copy.id != created.id
        assert copy.name == "Gateway (Copy)"
        assert copy.is_active is False
        assert copy.timeout == 1234
        assert copy.model_mapping == created.model_mapping
        assert copy.priority == created.priority + 1

    @pytest.mark.asyncio
    async def test_reorder(self, service):
        a = await service.create_profile(create_input(name="A"))
        b = await service.create_profile(create_input(name="B"))
        c = await service.create_profile(create_input(name="C"))

        reordered = await service.reorder_profiles([c.id, a.id, b.id])

        assert [p.name for p in reordered] == ["C", "A", "B"]
        assert [p.priority for p in reordered] == [3, 2, 1]
        assert [p.name for p in await service.get_routing_profiles()] == ["C", "A", "B"]


class TestProfileSelection:
    """Tests for active-profile lookups."""

    @pytest.mark.asyncio
    async def test_active_profiles_by_type(self, service):
        await service.create_profile(create_input(name="Low", priority=1))
        await service.create_profile(create_input(name="High", priority=5))
        await service.create_profile(create_input(name="Off", priority=9, is_active=False))
        await service.create_profile(create_input(name="Claude", type=ANTHROPIC, priority=3))

        active = await service.get_active_profiles_by_type(OPENAI)

        assert [p.name for p in active] == ["High", "Low"]
        assert (await service.get_active_profile(OPENAI)).name == "High"
        assert await service.has_active_profiles(ANTHROPIC) is True

    @pytest.mark.asyncio
    async def test_list_profiles_counts_active(self, service):
        await service.create_profile(create_input())
        await service.create_profile(create_input(is_active=False))
        await service.create_profile(create_input(type=ANTHROPIC))

        result = await service.list_profiles()

        assert len(result.profiles) == 3
        assert result.active_count == {"anthropic-compatible": 1, "openai-compatible": 1}

    @pytest.mark.asyncio
    async def test_reads_are_never_cached(self, service, store):
        """Test that changes made directly in the store are seen immediately."""
        await service.create_profile(create_input())
        await store.update_global_settings({"providerProfiles": []})

        assert (await service.list_profiles()).profiles == []


class TestConnectionTest:
    """Tests for connection probing."""

    @pytest.mark.asyncio
    async def test_openai_success_harvests_models(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"data": [{"id": "gpt-4o"}, {"id": "gpt-4o-mini"}]})

        service = service_with(handler)
        profile = await service.create_profile(create_input())

        result = await service.test_connection(profile.id)

        assert result.success is True
        assert result.available_models == ["gpt-4o", "gpt-4o-mini"]
        assert result.response_time_ms is not None
        assert seen[0].method == "GET"
        assert str(seen[0].url) == "https://gateway.example.com/v1/models"
        assert seen[0].headers["authorization"] == "Bearer sk-gateway-000000"

    @pytest.mark.asyncio
    async def test_anthropic_probe(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(400, json={"error": {"message": "model not found"}})

        service = service_with(handler)
        profile = await service.create_profile(create_input(type=ANTHROPIC))

        result = await service.test_connection(profile.id)

        assert result.success is True
        request = seen[0]
        assert str(request.url) == "https://gateway.example.com/v1/messages"
        assert request.headers["x-api-key"] == "sk-gateway-000000"
        assert request.headers["anthropic-version"] == "2023-06-01"
        assert json.loads(request.content)["max_tokens"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("profile_type", [ANTHROPIC, OPENAI])
    async def test_auth_failure(self, profile_type):
        service = service_with(lambda request: httpx.Response(401))
        profile = await service.create_profile(create_input(type=profile_type))

        result = await service.test_connection(profile.id)

        assert result.success is False
        assert result.error == "Authentication failed. Please check your API key."

    @pytest.mark.asyncio
    async def test_unexpected_response(self):
        service = service_with(lambda request: httpx.Response(500, text="boom"))
        profile = await service.create_profile(create_input())

        result = await service.test_connection(profile.id)

        assert result.success is False
        assert result.error == "Unexpected response: 500 Internal Server Error - boom"

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200)

        service = service_with(handler)
        profile = await service.create_profile(create_input(timeout=50))

        result = await service.test_connection(profile.id)

        assert result.success is False
        assert result.error == "Connection timeout after 50ms"

    @pytest.mark.asyncio
    async def test_network_error_never_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        service = service_with(handler)
        profile = await service.create_profile(create_input())

        result = await service.test_connection(profile.id)

        assert result.success is False
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_unknown_profile(self, service):
        result = await service.test_connection("missing")

        assert result.success is False
        assert result.error == "Profile not found: missing"

    @pytest.mark.asyncio
    async def test_unsaved_input_is_ssrf_checked(self):
        calls = []
        service = service_with(lambda request: calls.append(request) or httpx.Response(200, json={"data": []}))

        result = await service.test_profile_input(create_input(base_url="http://localhost:11434"))

        assert result.success is False
        assert result.error.startswith("Invalid base URL: Internal/private addresses are not allowed")
        assert calls == []

    @pytest.mark.asyncio
    async def test_unsaved_input_uses_settings_timeout(self, monkeypatch):
        monkeypatch.setenv("PROVIDER_TIMEOUT_MS", "50")

        async def handler(request):
            await asyncio.sleep(5)
            return httpx.Response(200)

        result = await service_with(handler).test_profile_input(create_input())

        assert result.success is False
        assert result.error == "Connection timeout after 50ms"

    @pytest.mark.asyncio
    async def test_save_result(self):
        service = service_with(lambda request: httpx.Response(200, json={"data": []}))
        profile = await service.create_profile(create_input())

        result = await service.test_connection(profile.id)
        await service.save_connection_test_result(profile.id, result)

        stored = await service.get_profile(profile.id)
        assert stored.last_connection_test.success is True
        assert stored.last_connection_test.available_models == []
