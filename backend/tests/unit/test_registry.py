"""
Tests for ProviderRegistry and the provider factory.
"""

from typing import List
from unittest.mock import patch

import pytest
from core.exceptions import ConfigurationError
from domain.provider_profile import ProviderProfileType
from providers.anthropic_proxy import AnthropicProxyProvider
from providers.base import AIProvider, InstallationStatus, ModelDefinition, ProviderType
from providers.claude import ClaudeProvider
from providers.factory import create_provider_from_profile, register_default_providers
from providers.openai_proxy import OpenAIProxyProvider
from providers.registry import ProviderRegistry


class FakeProvider(AIProvider):
    """Minimal provider recording which factory built it."""

    def __init__(self, label: str, installed: bool = True):
        self.label = label
        self.installed = installed

    @property
    def provider_type(self) -> ProviderType:
        return ProviderType.CLAUDE

    @property
    def name(self) -> str:
        return self.label

    async def stream_query(self, request, cancel_token=None):
        yield None

    async def detect_installation(self) -> InstallationStatus:
        if self.installed is None:
            raise RuntimeError("probe exploded")
        return InstallationStatus(installed=self.installed)

    def get_available_models(self) -> List[ModelDefinition]:
        return [ModelDefinition(id=f"{self.label}-model", name=self.label, model_string=self.label, provider=self.label)]

    def supports_feature(self, feature: str) -> bool:
        return feature == "text"


def factory_for(label: str, installed: bool = True):
    return lambda: FakeProvider(label, installed)


@pytest.fixture
def registry():
    return ProviderRegistry()


class TestRegistration:
    """Tests for register/unregister bookkeeping."""

    def test_names_are_lower_cased(self, registry):
        """Test that registration keys are case-insensitive."""
        registry.register("Claude", factory_for("claude"), aliases=["Anthropic"])

        assert registry.names() == ["claude"]
        assert registry.get_registration("CLAUDE").aliases == ["anthropic"]

    def test_last_registration_wins(self, registry):
        """Test that re-registering a name replaces the earlier factory."""
        registry.register("mock", factory_for("first"))
        registry.register("mock", factory_for("second"))

        assert registry.get_provider_by_name("mock").label == "second"

    def test_unregister(self, registry):
        """Test that unregister reports whether the name existed."""
        registry.register("mock", factory_for("mock"))

        assert registry.unregister("MOCK") is True
        assert registry.unregister("mock") is False
        assert registry.names() == []

    def test_get_provider_by_alias(self, registry):
        """Test lookup by alias."""
        registry.register("claude", factory_for("claude"), aliases=["anthropic"])

        assert registry.get_provider_by_name("Anthropic").label == "claude"
        assert registry.get_provider_by_name("unknown") is None


class TestResolveProviderName:
    """Tests for model id resolution."""

    def test_predicate_sees_lower_cased_id(self, registry):
        """Test that predicates are called with the lower-cased model id."""
        seen = []

        def predicate(model_id: str) -> bool:
            seen.append(model_id)
            return model_id.startswith("gpt-")

        registry.register("openai", factory_for("openai"), can_handle_model=predicate)

        assert registry.resolve_provider_name("GPT-4o") == "openai"
        assert seen == ["gpt-4o"]

    def test_higher_priority_consulted_first(self, registry):
        """Test that priority orders predicate checks."""
        registry.register("low", factory_for("low"), can_handle_model=lambda m: True, priority=0)
        registry.register("high", factory_for("high"), can_handle_model=lambda m: True, priority=10)

        assert registry.resolve_provider_name("anything") == "high"

    def test_equal_priority_keeps_registration_order(self, registry):
        """Test that ties are broken by registration order."""
        registry.register("first", factory_for("first"), can_handle_model=lambda m: True)
        registry.register("second", factory_for("second"), can_handle_model=lambda m: True)

        assert registry.resolve_provider_name("anything") == "first"

    def test_name_prefix_match(self, registry):
        """Test the "<name>-" prefix fallback when no predicate accepts the id."""
        registry.register("mock", factory_for("mock"))

        assert registry.resolve_provider_name("mock-large") == "mock"

    def test_name_prefix_match_is_case_sensitive(self, registry):
        """Test that the prefix phase compares the id as given."""
        registry.register("mock", factory_for("mock"))

        assert registry.resolve_provider_name("MOCK-large") == "claude"

    def test_default_when_nothing_matches(self, registry):
        """Test fallback to the default provider name."""
        registry.register("mock", factory_for("mock"), can_handle_model=lambda m: False)

        assert registry.resolve_provider_name("llama-3") == "claude"

    def test_predicate_beats_prefix(self, registry):
        """Test that a predicate match wins over a name prefix match."""
        registry.register("mock", factory_for("mock"))
        registry.register("catchall", factory_for("catchall"), can_handle_model=lambda m: True)

        assert registry.resolve_provider_name("mock-large") == "catchall"


class TestResolveProvider:
    """Tests for provider instantiation."""

    def test_resolves_registered_provider(self, registry):
        registry.register("claude", factory_for("claude"))
        registry.register("mock", factory_for("mock"))

        assert registry.resolve_provider("mock-1").label == "mock"

    def test_unknown_model_uses_default_registration(self, registry):
        registry.register("claude", factory_for("claude"))

        assert registry.resolve_provider("llama-3").label == "claude"

    def test_raises_without_default(self, registry):
        """Test that a missing default is a configuration error."""
        with pytest.raises(ConfigurationError):
            registry.resolve_provider("llama-3")

    def test_factory_called_per_resolution(self, registry):
        """Test that each resolution builds a fresh instance."""
        registry.register("claude", factory_for("claude"))

        assert registry.resolve_provider("x") is not registry.resolve_provider("x")


class TestAggregates:
    """Tests for installation checks and model listing."""

    @pytest.mark.asyncio
    async def test_check_all_providers(self, registry):
        """Test that a failing probe is reported as not installed."""
        registry.register("ok", factory_for("ok"))
        registry.register("missing", factory_for("missing", installed=False))
        registry.register("broken", factory_for("broken", installed=None))

        statuses = await registry.check_all_providers()

        assert statuses["ok"].installed is True
        assert statuses["missing"].installed is False
        assert statuses["broken"].installed is False
        assert statuses["broken"].error == "probe exploded"

    def test_get_all_available_models(self, registry):
        registry.register("a", factory_for("a"))
        registry.register("b", factory_for("b"))

        assert [m.id for m in registry.get_all_available_models()] == ["a-model", "b-model"]


class TestProviderFactory:
    """Tests for create_provider_from_profile and default registration."""

    def test_openai_profile(self, make_profile):
        provider = create_provider_from_profile(make_profile(type=ProviderProfileType.OPENAI_COMPATIBLE))

        assert isinstance(provider, OpenAIProxyProvider)
        assert provider.provider_type == ProviderType.OPENAI_PROXY
        assert provider.name == "openai-proxy:Work Gateway"

    def test_anthropic_profile(self, make_profile):
        provider = create_provider_from_profile(make_profile(type=ProviderProfileType.ANTHROPIC_COMPATIBLE))

        assert isinstance(provider, AnthropicProxyProvider)
        assert provider.provider_type == ProviderType.ANTHROPIC_PROXY
        assert provider.name == "anthropic-proxy:Work Gateway"

    def test_unknown_type_raises(self, make_profile):
        """Test that a profile type without a translator is rejected."""
        profile = make_profile().model_copy(update={"type": "grpc-compatible"})

        with pytest.raises(ConfigurationError) as exc_info:
            create_provider_from_profile(profile)

        assert exc_info.value.profile_id == "p1"

    def test_register_default_providers(self):
        """Test that the built-in Claude provider handles Claude models and is the default."""
        registry = register_default_providers(ProviderRegistry())

        assert registry.names() == ["claude"]
        assert registry.resolve_provider_name("claude-sonnet-4") == "claude"
        assert isinstance(registry.resolve_provider("llama-3"), ClaudeProvider)
        assert isinstance(registry.get_provider_by_name("anthropic"), ClaudeProvider)

    @pytest.mark.asyncio
    async def test_claude_detect_installation_handles_missing_cli(self):
        """Test that a missing CLI is reported, not raised."""
        with patch("asyncio.create_subprocess_exec", side_effect=FileNotFoundError("claude")):
            status = await ClaudeProvider().detect_installation()

        assert status.installed is False
        assert status.method == "cli"
