"""
LLM provider adapters.

Every vendor is wrapped behind the same call:

    adapter.generate(system_prompt, user_prompt, model) -> str

and signals failure by raising ProviderError. Groq, Mistral and OpenAI all
speak the OpenAI chat-completions protocol and share one adapter; Claude uses
the Anthropic messages API.
"""
import logging
from typing import Dict, List, Optional

import anthropic
import openai

from ...config import ProviderCredentials
from ...errors import ProviderError

logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 2048
REQUEST_TIMEOUT = 60  # seconds

# Candidate models per provider, most reliable first
PROVIDER_MODELS: Dict[str, List[str]] = {
    "groq": ["llama3-70b-8192", "mixtral-8x7b-32768", "llama3-8b-8192"],
    "mistral": ["mistral-large-latest", "mistral-small-latest"],
    "openai": ["gpt-4o-mini", "gpt-4o"],
    "claude": ["claude-3-5-sonnet-latest", "claude-3-5-haiku-latest"],
}

PROVIDER_BASE_URLS: Dict[str, Optional[str]] = {
    "groq": "https://api.groq.com/openai/v1",
    "mistral": "https://api.mistral.ai/v1",
    "openai": None,
}


class ProviderAdapter:
    """Base adapter. Subclasses implement generate()."""

    name: str = ""

    def __init__(self, name: str, models: Optional[List[str]] = None):
        self.name = name
        self.models = list(models) if models is not None else list(PROVIDER_MODELS.get(name, []))

    def generate(self, system_prompt: str, user_prompt: str, model: str) -> str:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r}, models={self.models!r})"


def _describe_api_error(e: Exception) -> str:
    """Error text including the HTTP status so rate limits stay recognizable."""
    status_code = getattr(e, "status_code", None)
    message = getattr(e, "message", None) or str(e)
    if status_code is not None:
        return f"HTTP {status_code}: {message}"
    return message


class OpenAICompatibleAdapter(ProviderAdapter):
    """Chat-completions adapter for OpenAI and OpenAI-compatible vendors."""

    def __init__(self, name: str, api_key: str, base_url: Optional[str] = None,
                 models: Optional[List[str]] = None, client=None):
        super().__init__(name, models)
        self.client = client or openai.OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=REQUEST_TIMEOUT,
            max_retries=0,  # retries are driven by the orchestrator
        )

    def generate(self, system_prompt: str, user_prompt: str, model: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                max_tokens=MAX_OUTPUT_TOKENS,
            )
        except openai.APIError as e:
            raise ProviderError(self.name, model, _describe_api_error(e)) from e

        choices = getattr(response, "choices", None) or []
        if not choices or choices[0].message is None:
            raise ProviderError(self.name, model, "Réponse sans contenu")

        content = choices[0].message.content
        if not content:
            raise ProviderError(self.name, model, "Réponse sans contenu")
        return content


class ClaudeAdapter(ProviderAdapter):
    """Anthropic messages API adapter."""

    def __init__(self, api_key: str, models: Optional[List[str]] = None, client=None):
        super().__init__("claude", models)
        self.client = client or anthropic.Anthropic(
            api_key=api_key,
            timeout=REQUEST_TIMEOUT,
            max_retries=0,
        )

    def generate(self, system_prompt: str, user_prompt: str, model: str) -> str:
        try:
            message = self.client.messages.create(
                model=model,
                max_tokens=MAX_OUTPUT_TOKENS,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )
        except anthropic.APIError as e:
            raise ProviderError(self.name, model, _describe_api_error(e)) from e

        parts = [
            block.text for block in (getattr(message, "content", None) or [])
            if getattr(block, "type", None) == "text"
        ]
        if not parts:
            raise ProviderError(self.name, model, "Réponse sans contenu")
        return "".join(parts)


def build_adapters(credentials: ProviderCredentials) -> Dict[str, ProviderAdapter]:
    """Adapters for every provider with a configured key, keyed by provider name."""
    adapters: Dict[str, ProviderAdapter] = {}
    for name, api_key in credentials.configured().items():
        if name == "claude":
            adapters[name] = ClaudeAdapter(api_key=api_key)
        else:
            adapters[name] = OpenAICompatibleAdapter(
                name=name,
                api_key=api_key,
                base_url=PROVIDER_BASE_URLS.get(name),
            )
        logger.debug(f"Configured AI provider: {name}")
    return adapters
