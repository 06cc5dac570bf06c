"""
Anthropic-compatible proxy provider.

Delegates the wire protocol to the Claude Agent SDK and overrides the
endpoint, credential, model and permission policy per profile.
"""

from .provider import API_KEY_ENV_VAR, BASE_URL_ENV_VAR, AnthropicProxyProvider, autonomous_policy

__all__ = [
    "API_KEY_ENV_VAR",
    "BASE_URL_ENV_VAR",
    "AnthropicProxyProvider",
    "autonomous_policy",
]
