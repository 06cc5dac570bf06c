"""
Shared base for providers built from a provider profile.

Both proxy translators are bound to one profile at construction time; the
profile decides the endpoint, the credential, the model mapping and the
timeout. This base holds everything that does not depend on the wire
protocol.
"""

from __future__ import annotations

import ssl
from typing import ClassVar, FrozenSet, List, Optional, Union

from domain.model_mapping import map_model_to_remote
from domain.provider_profile import ProviderProfile

from .base import AIProvider, InstallationStatus, ModelDefinition


def tls_verify_for(profile: ProviderProfile) -> Union[bool, ssl.SSLContext]:
    """httpx ``verify`` value: a context trusting the profile CA bundle, or True."""
    if profile.custom_ca_cert:
        return ssl.create_default_context(cadata=profile.custom_ca_cert)
    return True


class ProfileBackedProvider(AIProvider):
    """Provider bound to a single ProviderProfile.

    Subclasses set ``NAME_PREFIX``, ``FEATURES``, ``MAPPED_SUPPORTS_VISION``
    and implement ``default_models()`` and ``stream_query()``.
    """

    NAME_PREFIX: ClassVar[str] = ""
    FEATURES: ClassVar[FrozenSet[str]] = frozenset()
    MAPPED_SUPPORTS_VISION: ClassVar[bool] = False

    def __init__(self, profile: ProviderProfile):
        self._profile = profile

    @property
    def profile(self) -> ProviderProfile:
        """The profile this provider is configured with."""
        return self._profile

    @property
    def name(self) -> str:
        return f"{self.NAME_PREFIX}:{self._profile.name}"

    @property
    def base_url(self) -> str:
        """Profile base URL without trailing slashes."""
        return self._profile.base_url.rstrip("/")

    def remote_model(self, local_model: str) -> str:
        return map_model_to_remote(local_model, self._profile)

    def tls_verify(self) -> Union[bool, ssl.SSLContext]:
        return tls_verify_for(self._profile)

    async def detect_installation(self) -> InstallationStatus:
        """A proxy is always "installed" once a profile exists."""
        has_api_key = bool(self._profile.api_key)
        last_test = self._profile.last_connection_test
        return InstallationStatus(
            installed=True,
            method="sdk",
            has_api_key=has_api_key,
            authenticated=last_test.success if last_test is not None else has_api_key,
            path=self._profile.base_url,
        )

    def get_available_models(self) -> List[ModelDefinition]:
        """Models from the profile mapping, or the defaults for this wire protocol."""
        if self._profile.model_mapping:
            return [
                ModelDefinition(
                    id=entry.local_model,
                    name=entry.local_model,
                    model_string=entry.remote_model,
                    provider=self.name,
                    description=f"Mapped to {entry.remote_model} on {self._profile.name}",
                    supports_vision=self.MAPPED_SUPPORTS_VISION,
                    supports_tools=True,
                )
                for entry in self._profile.model_mapping
            ]
        return self.default_models()

    def default_models(self) -> List[ModelDefinition]:
        return []

    def _default_model(
        self,
        model_id: str,
        display_name: str,
        context_window: int,
        max_output_tokens: int,
        supports_vision: bool,
        tier: Optional[str],
    ) -> ModelDefinition:
        return ModelDefinition(
            id=model_id,
            name=display_name,
            model_string=model_id,
            provider=self.name,
            description=f"Via {self._profile.name}",
            context_window=context_window,
            max_output_tokens=max_output_tokens,
            supports_vision=supports_vision,
            supports_tools=True,
            tier=tier,
        )

    def supports_feature(self, feature: str) -> bool:
        return feature in self.FEATURES
