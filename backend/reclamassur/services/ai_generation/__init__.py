"""
AI Letter Generation

Provider adapters (Groq, Mistral, OpenAI, Claude), the retry/fallback
orchestrator and the static fallback letters.
"""

from .providers import (
    ProviderAdapter,
    OpenAICompatibleAdapter,
    ClaudeAdapter,
    build_adapters,
    PROVIDER_MODELS,
)
from .orchestrator import AIOrchestrator, DEFAULT_PROVIDER_ORDER
from .prompts import build_system_prompt, build_user_prompt, build_generation_context
from .fallback_templates import render_fallback_letter, FALLBACK_TEMPLATES
from .service import AICourrierService

__all__ = [
    'ProviderAdapter',
    'OpenAICompatibleAdapter',
    'ClaudeAdapter',
    'build_adapters',
    'PROVIDER_MODELS',
    'AIOrchestrator',
    'DEFAULT_PROVIDER_ORDER',
    'build_system_prompt',
    'build_user_prompt',
    'build_generation_context',
    'render_fallback_letter',
    'FALLBACK_TEMPLATES',
    'AICourrierService',
]
