"""
Ordered fallback across providers.

For one logical request the executor builds a chain of candidate providers
(matching proxy profiles by priority, then the registry default) and tries
them strictly one after another until one succeeds. There is no retry of
the same provider and no concurrent speculative execution.

State for one execution:
    Pending -> Trying(0) -> Trying(1) -> ... -> Succeeded | Failed
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Tuple, TypeVar

import httpx
from core.exceptions import FallbackExhaustedError, RequestCancelledError
from domain.provider_profile import ProviderProfile, ProviderProfileType
from domain.streaming import InternalStreamEvent

from .base import AIProvider, QueryRequest
from .cancellation import CancellationToken
from .factory import create_provider_from_profile
from .model_families import classify_model_affinity
from .registry import ProviderRegistry

logger = logging.getLogger("FallbackExecutor")

T = TypeVar("T")

PROFILE_MODEL_PREFIX = "profile:"


def parse_profile_model_id(model_id: str) -> Optional[Tuple[str, str]]:
    """Split ``profile:<profile-id>/<model>`` into (profile_id, model).

    Returns None for ordinary model ids.
    """
    if not model_id.startswith(PROFILE_MODEL_PREFIX):
        return None
    profile_id, _, model = model_id[len(PROFILE_MODEL_PREFIX) :].partition("/")
    return profile_id, model


def _active_of_type(profiles: List[ProviderProfile], profile_type: ProviderProfileType) -> List[ProviderProfile]:
    return [p for p in profiles if p.type == profile_type and p.is_active]


class FallbackExecutor:
    """Builds fallback chains and walks them.

    Profiles are passed in by the caller, already sorted by descending
    priority (see ProviderProfileService.get_routing_profiles()).
    """

    def __init__(self, registry: ProviderRegistry, http_transport: Optional[httpx.AsyncBaseTransport] = None):
        self._registry = registry
        self._http_transport = http_transport

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    def create_provider(self, profile: ProviderProfile) -> AIProvider:
        return create_provider_from_profile(profile, http_transport=self._http_transport)

    def build_fallback_chain(self, model_id: str, profiles: List[ProviderProfile]) -> List[AIProvider]:
        """Candidates to try, in order. Never empty.

        One provider per active profile matching the model family, followed
        by the registry's own resolution for the model.
        """
        chain: List[AIProvider] = []

        affinity = classify_model_affinity(model_id)
        if affinity is not None:
            chain.extend(self.create_provider(profile) for profile in _active_of_type(profiles, affinity))

        chain.append(self._registry.resolve_provider(model_id))
        return chain

    def get_provider_for_model_with_profiles(
        self,
        model_id: str,
        profiles: List[ProviderProfile],
        preferred_type: Optional[ProviderProfileType] = None,
    ) -> AIProvider:
        """Pick a single provider, preferring proxy profiles.

        Order:
        1. ``profile:<id>/<model>`` selects that profile directly
        2. First active profile of ``preferred_type``
        3. First active profile matching the model family
        4. The registry's resolution
        """
        explicit = parse_profile_model_id(model_id)
        if explicit is not None:
            profile_id, model = explicit
            profile = next((p for p in profiles if p.id == profile_id), None)
            if profile is not None:
                logger.debug(f"Using profile {profile.name} for model {model}")
                return self.create_provider(profile)
            logger.warning(f"Profile {profile_id} not found, falling back to standard routing")

        if preferred_type is not None:
            matching = _active_of_type(profiles, preferred_type)
            if matching:
                logger.debug(f"Using {preferred_type.value} profile: {matching[0].name}")
                return self.create_provider(matching[0])

        affinity = classify_model_affinity(model_id)
        if affinity is not None:
            matching = _active_of_type(profiles, affinity)
            if matching:
                logger.debug(f"Routing model {model_id} to profile: {matching[0].name}")
                return self.create_provider(matching[0])

        return self._registry.resolve_provider(model_id)

    def _log_failure(self, provider: AIProvider, error: BaseException, index: int, total: int) -> None:
        next_step = "Trying next provider..." if index < total - 1 else "No more fallbacks."
        logger.warning(f"Provider {provider.name} failed ({index + 1}/{total}): {error}. {next_step}")

    async def execute_with_fallback(
        self,
        model_id: str,
        profiles: List[ProviderProfile],
        operation: Callable[[AIProvider], Awaitable[T]],
    ) -> T:
        """Run ``operation`` against each candidate until one succeeds.

        Caller cancellation stops the walk immediately.

        Raises:
            RequestCancelledError: The caller cancelled
            FallbackExhaustedError: Every candidate failed; wraps the last error
        """
        chain = self.build_fallback_chain(model_id, profiles)
        attempted: List[str] = []
        last_error: Optional[Exception] = None

        for index, provider in enumerate(chain):
            attempted.append(provider.name)
            logger.debug(f"Attempting provider {index + 1}/{len(chain)}: {provider.name}")
            try:
                return await operation(provider)
            except RequestCancelledError:
                raise
            except Exception as e:
                last_error = e
                self._log_failure(provider, e, index, len(chain))

        raise FallbackExhaustedError(model_id, last_error, attempted) from last_error

    async def stream_with_fallback(
        self,
        model_id: str,
        profiles: List[ProviderProfile],
        request: QueryRequest,
        cancel_token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[InternalStreamEvent]:
        """Stream from the first candidate that works.

        A candidate is abandoned only while it has delivered nothing. Once an
        event reached the caller it cannot be revoked, so a later failure of
        the same candidate propagates instead of switching providers.

        Raises:
            RequestCancelledError: The caller cancelled
            FallbackExhaustedError: Every candidate failed before delivering an event
        """
        chain = self.build_fallback_chain(model_id, profiles)
        attempted: List[str] = []
        last_error: Optional[Exception] = None

        for index, provider in enumerate(chain):
            attempted.append(provider.name)
            logger.debug(f"Streaming from provider {index + 1}/{len(chain)}: {provider.name}")
            delivered = False
            stream = provider.stream_query(request, cancel_token)
            try:
                async for event in stream:
                    delivered = True
                    yield event
                return
            except RequestCancelledError:
                raise
            except Exception as e:
                if delivered:
                    raise
                last_error = e
                self._log_failure(provider, e, index, len(chain))
            finally:
                await stream.aclose()

        raise FallbackExhaustedError(model_id, last_error, attempted) from last_error
