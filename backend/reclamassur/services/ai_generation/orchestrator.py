"""
AI Provider Orchestrator

Tries the configured providers in priority order and each provider's models in
turn, retrying each model with exponential backoff. When everything fails the
static letter for the requested type is returned instead, so a caller that got
past the dossier fetch always receives letter text.

    SELECT_PROVIDER -> ATTEMPT_MODEL -> SUCCESS
                                     -> RETRY (max 3 attempts) -> ATTEMPT_MODEL
                                     -> NEXT_MODEL -> NEXT_PROVIDER
                    -> ALL_EXHAUSTED -> STATIC_FALLBACK
"""
import logging
import time
from typing import Callable, Dict, List, Optional

from ...config import PROVIDER_ENV_KEYS, ProviderCredentials
from ...errors import NoProviderConfiguredError, ProviderError
from ...models.letters import AttemptRecord, GenerationContext, GenerationResult, ProviderName
from .fallback_templates import render_fallback_letter
from .providers import ProviderAdapter, build_adapters

logger = logging.getLogger(__name__)

# Fixed default priority (most reliable first)
DEFAULT_PROVIDER_ORDER = ["groq", "mistral", "openai", "claude"]

MAX_ATTEMPTS_PER_MODEL = 3
MIN_CONTENT_LENGTH = 100


class AIOrchestrator:
    """
    Vendor-agnostic generation loop over an ordered set of adapters.

    Args:
        adapters: Provider name -> adapter, only for configured providers
        base_delay: Backoff base in seconds
        sleep: Delay function (replaced in tests)
    """

    def __init__(
        self,
        adapters: Dict[str, ProviderAdapter],
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = MAX_ATTEMPTS_PER_MODEL,
        min_length: int = MIN_CONTENT_LENGTH,
    ):
        self.adapters = adapters
        self.base_delay = base_delay
        self.sleep = sleep
        self.max_attempts = max_attempts
        self.min_length = min_length

    @classmethod
    def from_credentials(cls, credentials: ProviderCredentials, **kwargs) -> "AIOrchestrator":
        return cls(build_adapters(credentials), **kwargs)

    # =========================================================================
    # ORDERING
    # =========================================================================

    def provider_order(self, preferred: Optional[str] = None) -> List[str]:
        """
        Configured providers in the order they will be tried.

        A preferred provider goes first when it is configured; "auto" or an
        unconfigured name leaves the default order.

        Raises:
            NoProviderConfiguredError: no provider has a credential
        """
        if not self.adapters:
            raise NoProviderConfiguredError(PROVIDER_ENV_KEYS.values())

        order = [name for name in DEFAULT_PROVIDER_ORDER if name in self.adapters]
        # Adapters registered under names outside the default list go last
        order += [name for name in self.adapters if name not in order]

        preferred_name = getattr(preferred, "value", preferred)
        if preferred_name and preferred_name != ProviderName.AUTO.value and preferred_name in self.adapters:
            order.remove(preferred_name)
            order.insert(0, preferred_name)
        return order

    def backoff_delay(self, attempt: int, rate_limited: bool) -> float:
        """Delay after failed attempt number `attempt` (0-based)."""
        factor = 3 if rate_limited else 2
        return self.base_delay * (factor ** attempt)

    # =========================================================================
    # GENERATION
    # =========================================================================

    def _attempt_model(self, adapter: ProviderAdapter, model: str, system_prompt: str,
                       user_prompt: str, attempts: List[AttemptRecord]) -> Optional[str]:
        """Up to max_attempts tries of one model. Returns text or None."""
        for attempt in range(self.max_attempts):
            record = AttemptRecord(provider=adapter.name, model=model, attempt=attempt)
            attempts.append(record)
            try:
                content = adapter.generate(system_prompt, user_prompt, model)
                if content is None or len(content.strip()) < self.min_length:
                    raise ProviderError(
                        adapter.name, model,
                        f"Contenu trop court ({len((content or '').strip())} caractères)"
                    )
                logger.info(f"Generated letter with {adapter.name}/{model} (attempt {attempt + 1})")
                return content.strip()
            except ProviderError as e:
                record.error = str(e)
                record.rate_limited = e.rate_limited
                logger.warning(
                    f"Attempt {attempt + 1}/{self.max_attempts} failed for "
                    f"{adapter.name}/{model}: {e}"
                )
            except Exception as e:
                # Malformed SDK responses and unexpected client errors count as plain failures
                record.error = f"{type(e).__name__}: {e}"
                logger.exception(
                    f"Attempt {attempt + 1}/{self.max_attempts} crashed for {adapter.name}/{model}"
                )
            if attempt < self.max_attempts - 1:
                delay = self.backoff_delay(attempt, record.rate_limited)
                logger.info(f"Retrying {adapter.name}/{model} in {delay:.1f}s")
                self.sleep(delay)
        return None

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        type_courrier: str,
        context: GenerationContext,
        preferred: Optional[str] = None,
    ) -> GenerationResult:
        """
        Letter text from the first provider/model that succeeds, or the
        static letter for `type_courrier`.

        Raises:
            NoProviderConfiguredError: before any call when nothing is configured
        """
        order = self.provider_order(preferred)
        attempts: List[AttemptRecord] = []

        for provider_name in order:
            adapter = self.adapters[provider_name]
            for model in adapter.models:
                content = self._attempt_model(adapter, model, system_prompt, user_prompt, attempts)
                if content is not None:
                    return GenerationResult(
                        content=content,
                        provider=provider_name,
                        model=model,
                        attempts=attempts,
                        context=context,
                    )
                logger.warning(f"Model {provider_name}/{model} exhausted, moving on")
            logger.warning(f"Provider {provider_name} exhausted")

        logger.error(
            f"All AI providers failed after {len(attempts)} attempts, using static '{type_courrier}' letter"
        )
        return GenerationResult(
            content=render_fallback_letter(type_courrier, context),
            used_fallback=True,
            attempts=attempts,
            context=context,
        )
