"""
Provider registry.

Maps provider names to factories and model predicates. The registry is an
ordinary object created at startup and handed to whatever needs provider
resolution; registration is an explicit call, never an import side effect.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from core.exceptions import ConfigurationError
from core.settings import DEFAULT_PROVIDER_NAME

from .base import AIProvider, InstallationStatus, ModelDefinition

logger = logging.getLogger("ProviderRegistry")

ProviderFactory = Callable[[], AIProvider]
ModelPredicate = Callable[[str], bool]


@dataclass
class ProviderRegistration:
    """One registered provider.

    Attributes:
        name: Lower-cased provider name
        factory: Creates a fresh provider instance
        aliases: Alternative names accepted by get_provider_by_name()
        can_handle_model: Predicate called with the lower-cased model id
        priority: Higher registrations are consulted first
    """

    name: str
    factory: ProviderFactory
    aliases: List[str] = field(default_factory=list)
    can_handle_model: Optional[ModelPredicate] = None
    priority: int = 0


class ProviderRegistry:
    """Name -> registration map with priority-ordered model resolution.

    Ordering is recomputed on every lookup, so re-registering a provider
    takes effect immediately.
    """

    def __init__(self):
        self._registrations: Dict[str, ProviderRegistration] = {}

    def register(
        self,
        name: str,
        factory: ProviderFactory,
        aliases: Optional[List[str]] = None,
        can_handle_model: Optional[ModelPredicate] = None,
        priority: int = 0,
    ) -> None:
        """Register a provider. The last registration for a name wins."""
        key = name.lower()
        if key in self._registrations:
            logger.debug(f"Replacing provider registration: {key}")
        self._registrations[key] = ProviderRegistration(
            name=key,
            factory=factory,
            aliases=[alias.lower() for alias in aliases or []],
            can_handle_model=can_handle_model,
            priority=priority,
        )

    def unregister(self, name: str) -> bool:
        """Remove a registration. Returns False if the name was unknown."""
        return self._registrations.pop(name.lower(), None) is not None

    def names(self) -> List[str]:
        """Registered names in registration order."""
        return list(self._registrations)

    def get_registration(self, name: str) -> Optional[ProviderRegistration]:
        return self._registrations.get(name.lower())

    def _by_priority(self) -> List[ProviderRegistration]:
        # sorted() is stable: ties keep registration order
        return sorted(self._registrations.values(), key=lambda r: -r.priority)

    def resolve_provider_name(self, model_id: str) -> str:
        """Pick the provider name for a model id.

        Order:
        1. First registration (by priority) whose predicate accepts the lower-cased id
        2. First registration whose name is a "<name>-" prefix of the id (case-sensitive)
        3. The default provider name
        """
        registrations = self._by_priority()
        lowered = model_id.lower()

        for registration in registrations:
            if registration.can_handle_model is not None and registration.can_handle_model(lowered):
                return registration.name

        for registration in registrations:
            if model_id.startswith(f"{registration.name}-"):
                return registration.name

        return DEFAULT_PROVIDER_NAME

    def resolve_provider(self, model_id: str) -> AIProvider:
        """Instantiate the provider for a model id.

        Raises:
            ConfigurationError: Neither the resolved name nor the default is registered
        """
        name = self.resolve_provider_name(model_id)
        registration = self._registrations.get(name) or self._registrations.get(DEFAULT_PROVIDER_NAME)
        if registration is None:
            raise ConfigurationError(f"No provider registered for model {model_id} and no default provider")
        return registration.factory()

    def get_provider_by_name(self, name: str) -> Optional[AIProvider]:
        """Instantiate a provider by name or alias, or None if unknown."""
        key = name.lower()
        registration = self._registrations.get(key)
        if registration is None:
            registration = next((r for r in self._registrations.values() if key in r.aliases), None)
        return registration.factory() if registration is not None else None

    def all_providers(self) -> List[AIProvider]:
        """One fresh instance per registration, in registration order."""
        return [registration.factory() for registration in self._registrations.values()]

    async def check_all_providers(self) -> Dict[str, InstallationStatus]:
        """Installation status of every registered provider."""
        statuses = {}
        for name, registration in self._registrations.items():
            try:
                statuses[name] = await registration.factory().detect_installation()
            except Exception as e:
                logger.warning(f"Installation check failed for {name}: {e}")
                statuses[name] = InstallationStatus(installed=False, error=str(e))
        return statuses

    def get_all_available_models(self) -> List[ModelDefinition]:
        """Models of every registered provider, concatenated in registration order."""
        models: List[ModelDefinition] = []
        for provider in self.all_providers():
            models.extend(provider.get_available_models())
        return models
