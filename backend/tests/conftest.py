"""
Shared fixtures for the provider router tests.
"""

import pytest
from core.settings import reset_settings
from domain.provider_profile import ModelMappingEntry, ProviderProfile, ProviderProfileType


@pytest.fixture(autouse=True)
def fresh_settings():
    """Every test sees settings built from its own environment."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def make_profile():
    """Factory for ProviderProfile instances with sensible defaults."""

    def _make(**overrides) -> ProviderProfile:
        values = {
            "id": "p1",
            "name": "Work Gateway",
            "type": ProviderProfileType.OPENAI_COMPATIBLE,
            "base_url": "https://gateway.example.com",
            "api_key": "sk-test-key-123456",
            "priority": 1,
            "timeout": 5000,
        }
        values.update(overrides)
        if "model_mapping" in values:
            values["model_mapping"] = [
                entry if isinstance(entry, ModelMappingEntry) else ModelMappingEntry(**entry)
                for entry in values["model_mapping"]
            ]
        return ProviderProfile(**values)

    return _make
