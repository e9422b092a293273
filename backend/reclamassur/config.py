"""
ReclamAssur - Configuration
Settings are read once from the environment (and a local .env file) and passed
explicitly to the services that need them.
"""
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Optional

from dotenv import load_dotenv


# Environment keys checked for each LLM provider, in default priority order
PROVIDER_ENV_KEYS = {
    "groq": "GROQ_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "openai": "OPENAI_API_KEY",
    "claude": "CLAUDE_API_KEY",
}


@dataclass
class ProviderCredentials:
    """API keys for the LLM providers. Empty values mean "not configured"."""
    mistral_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    claude_api_key: Optional[str] = None

    @classmethod
    def from_env(cls) -> "ProviderCredentials":
        return cls(
            mistral_api_key=os.getenv("MISTRAL_API_KEY"),
            groq_api_key=os.getenv("GROQ_API_KEY"),
            openai_api_key=os.getenv("OPENAI_API_KEY"),
            claude_api_key=os.getenv("CLAUDE_API_KEY"),
        )

    def get(self, provider: str) -> Optional[str]:
        return getattr(self, f"{provider}_api_key", None)

    def configured(self) -> Dict[str, str]:
        """Provider name -> key, for every provider with a non-empty key."""
        keys = {}
        for provider in PROVIDER_ENV_KEYS:
            value = self.get(provider)
            if value and value.strip():
                keys[provider] = value.strip()
        return keys


@dataclass
class Settings:
    """Process-wide settings."""
    database_url: str
    jwt_secret_key: str
    access_token_expire_hours: int = 24
    storage_root: str = "storage"
    signed_url_expires_in: int = 3600
    max_upload_bytes: int = 10 * 1024 * 1024
    upload_pause_seconds: float = 0.5
    upload_retry_delay: float = 1.0
    ai_backoff_base_delay: float = 1.0
    log_level: str = "INFO"
    supabase_url: Optional[str] = None
    supabase_anon_key: Optional[str] = None
    providers: ProviderCredentials = field(default_factory=ProviderCredentials)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables."""
        load_dotenv()
        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                f"postgresql://{os.getenv('USER', 'postgres')}@localhost:5432/reclamassur"
            ),
            jwt_secret_key=os.getenv("JWT_SECRET_KEY", "reclamassur-secret-key-change-in-production"),
            access_token_expire_hours=int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24")),
            storage_root=os.getenv("STORAGE_ROOT", "storage"),
            signed_url_expires_in=int(os.getenv("SIGNED_URL_EXPIRES_IN", "3600")),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
            upload_pause_seconds=float(os.getenv("UPLOAD_PAUSE_SECONDS", "0.5")),
            upload_retry_delay=float(os.getenv("UPLOAD_RETRY_DELAY", "1.0")),
            ai_backoff_base_delay=float(os.getenv("AI_BACKOFF_BASE_DELAY", "1.0")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
            providers=ProviderCredentials.from_env(),
        )


@lru_cache()
def get_settings() -> Settings:
    """Cached settings accessor, usable as a FastAPI dependency."""
    return Settings.from_env()
