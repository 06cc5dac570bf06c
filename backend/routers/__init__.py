"""FastAPI routers for modular endpoint organization."""

from . import provider_profiles, providers, query

__all__ = [
    "provider_profiles",
    "providers",
    "query",
]
