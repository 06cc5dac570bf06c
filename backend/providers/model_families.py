"""
Model family heuristics.

Used by the registry predicates and by the fallback executor to decide which
kind of profile can serve a model id.
"""

from typing import Optional

from domain.provider_profile import ProviderProfileType

CLAUDE_FAMILY_FRAGMENTS = ("opus", "sonnet", "haiku")
OPENAI_FAMILY_PREFIXES = ("gpt-", "o1", "o3")


def is_claude_model(model_id: str) -> bool:
    """Check if a model id belongs to the Claude family."""
    lowered = model_id.lower()
    return lowered.startswith("claude-") or any(fragment in lowered for fragment in CLAUDE_FAMILY_FRAGMENTS)


def is_openai_model(model_id: str) -> bool:
    """Check if a model id belongs to the OpenAI family."""
    return model_id.lower().startswith(OPENAI_FAMILY_PREFIXES)


def classify_model_affinity(model_id: str) -> Optional[ProviderProfileType]:
    """Return the profile type that can serve a model id, or None."""
    if is_claude_model(model_id):
        return ProviderProfileType.ANTHROPIC_COMPATIBLE
    if is_openai_model(model_id):
        return ProviderProfileType.OPENAI_COMPATIBLE
    return None
