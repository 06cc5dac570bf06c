"""
Tests for AnthropicProxyProvider - SDK queries routed through a profile endpoint.

claude_agent_sdk.query is replaced with an async-generator fake, so no CLI
subprocess is started.
"""

from unittest.mock import patch

import pytest
from claude_agent_sdk import ResultMessage
from claude_agent_sdk.types import StreamEvent
from core.exceptions import AuthError, RateLimitError
from domain.provider_profile import ProviderProfileType
from domain.streaming import AssistantTextDelta, ResultEvent
from providers.anthropic_proxy import API_KEY_ENV_VAR, BASE_URL_ENV_VAR, AnthropicProxyProvider
from providers.base import QueryRequest


def recording_query(*messages, error=None):
    calls = []

    def _query(*, prompt, options):
        calls.append(options)

        async def _stream():
            for message in messages:
                yield message
            if error is not None:
                raise error

        return _stream()

    _query.calls = calls
    return _query


def done(result="ok", is_error=False):
    return ResultMessage(
        subtype="error_during_execution" if is_error else "success",
        duration_ms=1,
        duration_api_ms=1,
        is_error=is_error,
        num_turns=1,
        session_id="proxy-session",
        result=result,
    )


@pytest.fixture
def proxy_profile(make_profile):
    return make_profile(
        id="anth-1",
        name="Corp Claude",
        type=ProviderProfileType.ANTHROPIC_COMPATIBLE,
        base_url="https://claude-proxy.example.com/",
        api_key="sk-ant-proxy-abcdef",
        model_mapping=[{"local_model": "claude-sonnet-4", "remote_model": "corp-sonnet"}],
    )


async def run(provider, request):
    return [event async for event in provider.stream_query(request)]


class TestAnthropicProxyOptions:
    """Tests for what the proxy changes compared to the default provider."""

    @pytest.mark.asyncio
    async def test_endpoint_credential_and_model(self, proxy_profile):
        query = recording_query(done())

        with patch("providers.claude.client.query", query):
            await run(AnthropicProxyProvider(proxy_profile), QueryRequest(prompt="hi", model="Claude-Sonnet-4"))

        options = query.calls[0]
        assert options.model == "corp-sonnet"
        assert options.env[BASE_URL_ENV_VAR] == "https://claude-proxy.example.com"
        assert options.env[API_KEY_ENV_VAR] == "sk-ant-proxy-abcdef"

    @pytest.mark.asyncio
    async def test_autonomous_permission_mode(self, proxy_profile):
        """Test that proxy sessions bypass permissions with the default tool set."""
        query = recording_query(done())

        with patch("providers.claude.client.query", query):
            await run(AnthropicProxyProvider(proxy_profile), QueryRequest(prompt="hi", model="x"))

        options = query.calls[0]
        assert options.permission_mode == "bypassPermissions"
        assert options.allowed_tools == ["Read", "Write", "Edit", "Glob", "Grep", "Bash", "WebSearch", "WebFetch"]

    @pytest.mark.asyncio
    async def test_caller_restriction_is_kept(self, proxy_profile):
        query = recording_query(done())

        with patch("providers.claude.client.query", query):
            await run(AnthropicProxyProvider(proxy_profile), QueryRequest(prompt="hi", model="x", allowed_tools=["Read"]))

        assert query.calls[0].allowed_tools == ["Read"]

    @pytest.mark.asyncio
    async def test_mcp_servers_lift_tool_restriction(self, proxy_profile):
        query = recording_query(done())
        request = QueryRequest(prompt="hi", model="x", allowed_tools=["Read"], mcp_servers={"tools": {"type": "stdio"}})

        with patch("providers.claude.client.query", query):
            await run(AnthropicProxyProvider(proxy_profile), request)

        assert query.calls[0].allowed_tools == []
        assert query.calls[0].mcp_servers == {"tools": {"type": "stdio"}}

    @pytest.mark.asyncio
    async def test_resume_only_with_history(self, proxy_profile):
        query = recording_query(done())
        provider = AnthropicProxyProvider(proxy_profile)

        with patch("providers.claude.client.query", query):
            await run(provider, QueryRequest(prompt="hi", model="x", resume_session_id="s-old"))
            await run(
                provider,
                QueryRequest(
                    prompt="hi",
                    model="x",
                    resume_session_id="s-old",
                    conversation_history=[{"role": "user", "content": "earlier"}],
                ),
            )

        assert query.calls[0].resume is None
        assert query.calls[1].resume == "s-old"


class TestAnthropicProxyEnvironment:
    """Tests for the environment allowlist."""

    def test_only_allowlisted_variables_are_forwarded(self, proxy_profile, monkeypatch):
        monkeypatch.setenv("PATH", "/usr/bin")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "do-not-leak")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "the-users-own-key")

        env = AnthropicProxyProvider(proxy_profile).build_env()

        assert env["PATH"] == "/usr/bin"
        assert "AWS_SECRET_ACCESS_KEY" not in env
        assert env[API_KEY_ENV_VAR] == "sk-ant-proxy-abcdef"

    def test_custom_allowlist(self, proxy_profile, monkeypatch):
        monkeypatch.setenv("PROXY_ENV_ALLOWLIST", "HOME, CUSTOM_VAR")
        monkeypatch.setenv("HOME", "/home/agent")
        monkeypatch.setenv("CUSTOM_VAR", "1")
        monkeypatch.setenv("PATH", "/usr/bin")

        env = AnthropicProxyProvider(proxy_profile).build_env()

        assert set(env) == {"HOME", "CUSTOM_VAR", BASE_URL_ENV_VAR, API_KEY_ENV_VAR}


class TestAnthropicProxyStreaming:
    """Tests for streamed output and error annotation."""

    @pytest.mark.asyncio
    async def test_events_are_normalized(self, proxy_profile):
        delta = StreamEvent(
            uuid="u",
            session_id="proxy-session",
            event={"type": "content_block_delta", "delta": {"type": "text_delta", "text": "Hi"}},
        )
        query = recording_query(delta, done("Hi"))

        with patch("providers.claude.client.query", query):
            events = await run(AnthropicProxyProvider(proxy_profile), QueryRequest(prompt="hi", model="x"))

        assert events == [
            AssistantTextDelta(session_id="proxy-session", text="Hi"),
            ResultEvent(session_id="proxy-session", result="Hi"),
        ]

    @pytest.mark.asyncio
    async def test_errors_carry_profile_identity(self, proxy_profile):
        query = recording_query(error=Exception("401 Unauthorized: invalid x-api-key"))

        with patch("providers.claude.client.query", query):
            with pytest.raises(AuthError) as exc_info:
                await run(AnthropicProxyProvider(proxy_profile), QueryRequest(prompt="hi", model="x"))

        error = exc_info.value
        assert error.profile_id == "anth-1"
        assert error.profile_name == "Corp Claude"
        assert error.message.endswith("(Profile: Corp Claude)")

    @pytest.mark.asyncio
    async def test_error_result_raises_with_profile_identity(self, proxy_profile):
        """Test that an error result reported by the CLI fails the stream as an annotated error."""
        query = recording_query(done("API Error: 401 invalid x-api-key", is_error=True))

        with patch("providers.claude.client.query", query):
            with pytest.raises(AuthError) as exc_info:
                await run(AnthropicProxyProvider(proxy_profile), QueryRequest(prompt="hi", model="x"))

        assert exc_info.value.profile_id == "anth-1"
        assert exc_info.value.profile_name == "Corp Claude"
        assert exc_info.value.message == "API Error: 401 invalid x-api-key (Profile: Corp Claude)"

    @pytest.mark.asyncio
    async def test_rate_limit_tip(self, proxy_profile):
        query = recording_query(error=Exception("429 Too Many Requests, retry after 30 seconds"))

        with patch("providers.claude.client.query", query):
            with pytest.raises(RateLimitError) as exc_info:
                await run(AnthropicProxyProvider(proxy_profile), QueryRequest(prompt="hi", model="x"))

        assert exc_info.value.retry_after == 30.0
        assert 'Tip: Profile "Corp Claude" hit rate limit.' in exc_info.value.message


class TestAnthropicProxyModels:
    def test_mapped_models_support_vision(self, proxy_profile):
        models = AnthropicProxyProvider(proxy_profile).get_available_models()

        assert [(m.id, m.model_string) for m in models] == [("claude-sonnet-4", "corp-sonnet")]
        assert models[0].supports_vision is True
        assert models[0].provider == "anthropic-proxy:Corp Claude"

    def test_default_models(self, make_profile):
        provider = AnthropicProxyProvider(make_profile(type=ProviderProfileType.ANTHROPIC_COMPATIBLE))

        models = provider.get_available_models()

        assert len(models) == 3
        assert all(m.description == "Via Work Gateway" for m in models)
        assert provider.supports_feature("thinking")
