"""
Settings store interface.

Profile persistence lives outside this service. Whatever backs it (a JSON
file, a database, a desktop app's settings service) only has to provide the
two operations of SettingsStore. Records use camelCase keys.
"""

import asyncio
import copy
from typing import Any, Dict, List, Optional, Protocol

from domain.provider_profile import CamelModel, ProviderProfile
from pydantic import Field


class GlobalSettings(CamelModel):
    """The part of the global settings record this service reads."""

    provider_profiles: List[ProviderProfile] = Field(default_factory=list)


class SettingsStore(Protocol):
    """External settings collaborator. The single source of truth for profiles."""

    async def get_global_settings(self) -> GlobalSettings: ...

    async def update_global_settings(self, partial: Dict[str, Any]) -> None: ...


class InMemorySettingsStore:
    """Process-local SettingsStore.

    Keeps the raw camelCase record and hands out fresh copies, so callers
    can never mutate stored state by accident.
    """

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._record: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self._lock = asyncio.Lock()

    async def get_global_settings(self) -> GlobalSettings:
        async with self._lock:
            return GlobalSettings.model_validate(copy.deepcopy(self._record))

    async def update_global_settings(self, partial: Dict[str, Any]) -> None:
        async with self._lock:
            self._record.update(copy.deepcopy(partial))

    def snapshot(self) -> Dict[str, Any]:
        """Copy of the raw stored record (tests and debugging)."""
        return copy.deepcopy(self._record)
