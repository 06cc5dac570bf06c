"""
Model name mapping between local aliases and remote model identifiers.

Matching is case-insensitive and the first matching entry wins. Entries are
not required to be unique, so a profile with duplicate local or remote names
may not round-trip; profile authors are responsible for unambiguous tables.
"""

from domain.provider_profile import ProviderProfile


def map_model_to_remote(local_model: str, profile: ProviderProfile) -> str:
    """Get the remote model name for a local model using the profile's mapping.

    Args:
        local_model: Local model name (e.g., "claude-3-opus")
        profile: Provider profile with model mapping

    Returns:
        Remote model name, or the original name if no mapping exists
    """
    wanted = local_model.lower()
    for entry in profile.model_mapping:
        if entry.local_model.lower() == wanted:
            return entry.remote_model
    return local_model


def map_model_from_remote(remote_model: str, profile: ProviderProfile) -> str:
    """Get the local model name for a remote model using the profile's mapping.

    Args:
        remote_model: Remote model name from a provider response
        profile: Provider profile with model mapping

    Returns:
        Local model name, or the original name if no mapping exists
    """
    wanted = remote_model.lower()
    for entry in profile.model_mapping:
        if entry.remote_model.lower() == wanted:
            return entry.local_model
    return remote_model
