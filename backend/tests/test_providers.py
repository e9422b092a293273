"""
Provider Adapter Tests

Adapters are exercised with fake SDK clients: no network access.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import anthropic
import httpx
import openai
import pytest

from reclamassur.config import ProviderCredentials
from reclamassur.errors import ProviderError, is_rate_limit_message
from reclamassur.services.ai_generation import (
    PROVIDER_MODELS,
    ClaudeAdapter,
    OpenAICompatibleAdapter,
    build_adapters,
)


# =============================================================================
# FIXTURES
# =============================================================================

def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def status_response(status_code, url):
    return httpx.Response(status_code, request=httpx.Request("POST", url))


@pytest.fixture
def openai_client():
    return MagicMock()


@pytest.fixture
def anthropic_client():
    return MagicMock()


# =============================================================================
# OPENAI-COMPATIBLE ADAPTER TESTS
# =============================================================================

class TestOpenAICompatibleAdapter:

    def test_sends_system_and_user_messages(self, openai_client):
        openai_client.chat.completions.create.return_value = chat_response("Lettre générée")
        adapter = OpenAICompatibleAdapter("groq", api_key="k", client=openai_client)

        assert adapter.generate("système", "utilisateur", "llama3-70b-8192") == "Lettre générée"

        kwargs = openai_client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "llama3-70b-8192"
        assert kwargs["messages"] == [
            {"role": "system", "content": "système"},
            {"role": "user", "content": "utilisateur"},
        ]

    def test_default_models(self, openai_client):
        adapter = OpenAICompatibleAdapter("mistral", api_key="k", client=openai_client)
        assert adapter.models == PROVIDER_MODELS["mistral"]

    def test_rate_limit_error_is_flagged(self, openai_client):
        openai_client.chat.completions.create.side_effect = openai.RateLimitError(
            "Rate limit reached",
            response=status_response(429, "https://api.groq.com/openai/v1/chat/completions"),
            body=None,
        )
        adapter = OpenAICompatibleAdapter("groq", api_key="k", client=openai_client)

        with pytest.raises(ProviderError) as exc_info:
            adapter.generate("s", "u", "llama3-70b-8192")

        assert exc_info.value.rate_limited is True
        assert exc_info.value.provider == "groq"
        assert "429" in str(exc_info.value)

    def test_server_error_not_rate_limited(self, openai_client):
        openai_client.chat.completions.create.side_effect = openai.InternalServerError(
            "Service unavailable",
            response=status_response(503, "https://api.mistral.ai/v1/chat/completions"),
            body=None,
        )
        adapter = OpenAICompatibleAdapter("mistral", api_key="k", client=openai_client)

        with pytest.raises(ProviderError) as exc_info:
            adapter.generate("s", "u", "mistral-large-latest")
        assert exc_info.value.rate_limited is False

    def test_empty_content(self, openai_client):
        openai_client.chat.completions.create.return_value = chat_response(None)
        adapter = OpenAICompatibleAdapter("openai", api_key="k", client=openai_client)

        with pytest.raises(ProviderError):
            adapter.generate("s", "u", "gpt-4o-mini")

    def test_no_choices(self, openai_client):
        openai_client.chat.completions.create.return_value = SimpleNamespace(choices=[])
        adapter = OpenAICompatibleAdapter("openai", api_key="k", client=openai_client)

        with pytest.raises(ProviderError):
            adapter.generate("s", "u", "gpt-4o-mini")


# =============================================================================
# CLAUDE ADAPTER TESTS
# =============================================================================

class TestClaudeAdapter:

    def test_joins_text_blocks(self, anthropic_client):
        anthropic_client.messages.create.return_value = SimpleNamespace(content=[
            SimpleNamespace(type="text", text="Madame, "),
            SimpleNamespace(type="text", text="Monsieur"),
        ])
        adapter = ClaudeAdapter(api_key="k", client=anthropic_client)

        assert adapter.generate("système", "utilisateur", "claude-3-5-sonnet-latest") == "Madame, Monsieur"

        kwargs = anthropic_client.messages.create.call_args.kwargs
        assert kwargs["system"] == "système"
        assert kwargs["messages"] == [{"role": "user", "content": "utilisateur"}]

    def test_api_error(self, anthropic_client):
        anthropic_client.messages.create.side_effect = anthropic.RateLimitError(
            "rate_limit_error",
            response=status_response(429, "https://api.anthropic.com/v1/messages"),
            body=None,
        )
        adapter = ClaudeAdapter(api_key="k", client=anthropic_client)

        with pytest.raises(ProviderError) as exc_info:
            adapter.generate("s", "u", "claude-3-5-haiku-latest")
        assert exc_info.value.rate_limited is True

    def test_no_text_block(self, anthropic_client):
        anthropic_client.messages.create.return_value = SimpleNamespace(content=[])
        adapter = ClaudeAdapter(api_key="k", client=anthropic_client)

        with pytest.raises(ProviderError):
            adapter.generate("s", "u", "claude-3-5-haiku-latest")


# =============================================================================
# ADAPTER FACTORY TESTS
# =============================================================================

class TestBuildAdapters:

    def test_only_configured_providers(self):
        credentials = ProviderCredentials(groq_api_key="gsk", claude_api_key="sk-ant", mistral_api_key=" ")

        with patch("reclamassur.services.ai_generation.providers.openai.OpenAI") as openai_cls, \
                patch("reclamassur.services.ai_generation.providers.anthropic.Anthropic") as anthropic_cls:
            adapters = build_adapters(credentials)

        assert set(adapters) == {"groq", "claude"}
        assert openai_cls.call_args.kwargs["base_url"] == "https://api.groq.com/openai/v1"
        assert openai_cls.call_args.kwargs["max_retries"] == 0
        assert anthropic_cls.call_args.kwargs["api_key"] == "sk-ant"


# =============================================================================
# RATE LIMIT DETECTION TESTS
# =============================================================================

class TestRateLimitDetection:

    @pytest.mark.parametrize("message", [
        "HTTP 429: Too many requests",
        "Error code: 429 - {'error': 'slow down'}",
        "rate_limit_error",
        "You exceeded your current quota",
    ])
    def test_rate_limit_messages(self, message):
        assert is_rate_limit_message(message) is True

    @pytest.mark.parametrize("message", [
        "HTTP 500: request req_4291a failed",
        "HTTP 400: max_tokens 4290 exceeds the limit",
    ])
    def test_digits_alone_are_not_a_rate_limit(self, message):
        assert is_rate_limit_message(message) is False

    def test_provider_error_backoff_class(self):
        assert ProviderError("groq", "m", "HTTP 502: upstream 429ms timeout").rate_limited is False
