"""
ReclamAssur - Error Types
Exceptions raised by the service layer. Routers map them to HTTP responses.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional


class ErrorType(str, Enum):
    """Categories of errors raised by the service layer."""
    DOSSIER_NOT_FOUND = "DOSSIER_NOT_FOUND"
    PROFILE_MISSING = "PROFILE_MISSING"
    NOT_FOUND = "NOT_FOUND"
    NO_PROVIDER_CONFIGURED = "NO_PROVIDER_CONFIGURED"
    PROVIDER_FAILURE = "PROVIDER_FAILURE"
    PROVIDER_RATE_LIMIT = "PROVIDER_RATE_LIMIT"
    ACCESS_DENIED = "ACCESS_DENIED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    STORAGE_FAILURE = "STORAGE_FAILURE"


@dataclass
class ErrorContext:
    """
    Context attached to every ReclamAssur error.

    Attributes:
        error_type: Category from ErrorType
        message: Human-readable message (French for user-facing errors)
        recoverable: Whether a caller may retry or fall back
        details: Optional extra fields for logging
    """
    error_type: ErrorType
    message: str
    recoverable: bool = False
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.error_type.value,
            "message": self.message,
            "recoverable": self.recoverable,
            "details": self.details or {},
        }


class ReclamAssurError(Exception):
    """Base exception carrying an ErrorContext."""

    def __init__(self, context: ErrorContext):
        self.context = context
        super().__init__(context.message)

    @property
    def error_type(self) -> ErrorType:
        return self.context.error_type

    def to_dict(self) -> Dict[str, Any]:
        return self.context.to_dict()


# =============================================================================
# UPSTREAM FETCH ERRORS (fatal)
# =============================================================================

class DossierNotFoundError(ReclamAssurError):
    def __init__(self, dossier_id: str):
        super().__init__(ErrorContext(
            error_type=ErrorType.DOSSIER_NOT_FOUND,
            message=f"Dossier non trouvé pour l'ID: {dossier_id}",
            details={"dossier_id": dossier_id},
        ))


class MissingProfileError(ReclamAssurError):
    def __init__(self, dossier_id: str):
        super().__init__(ErrorContext(
            error_type=ErrorType.PROFILE_MISSING,
            message="Données du profil client manquantes",
            details={"dossier_id": dossier_id},
        ))


class NotFoundError(ReclamAssurError):
    """Generic missing row (template, letter, document...)."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(ErrorContext(
            error_type=ErrorType.NOT_FOUND,
            message=f"{entity} introuvable: {entity_id}",
            details={"entity": entity, "id": entity_id},
        ))


# =============================================================================
# GENERATION ERRORS
# =============================================================================

class NoProviderConfiguredError(ReclamAssurError):
    def __init__(self, checked_keys: Iterable[str]):
        keys = list(checked_keys)
        super().__init__(ErrorContext(
            error_type=ErrorType.NO_PROVIDER_CONFIGURED,
            message=f"Aucun fournisseur IA configuré. Variables vérifiées: {', '.join(keys)}",
            details={"checked_keys": keys},
        ))
        self.checked_keys = keys


# Substrings identifying rate-limit / quota exhaustion in provider error messages
RATE_LIMIT_SIGNATURES = (
    "http 429",
    "error code: 429",
    "rate limit",
    "rate_limit",
    "ratelimit",
    "quota",
    "too many requests",
    "resource_exhausted",
)


def is_rate_limit_message(message: str) -> bool:
    lowered = (message or "").lower()
    return any(signature in lowered for signature in RATE_LIMIT_SIGNATURES)


class ProviderError(ReclamAssurError):
    """A single provider/model attempt failed. Recoverable."""

    def __init__(self, provider: str, model: str, message: str):
        rate_limited = is_rate_limit_message(message)
        super().__init__(ErrorContext(
            error_type=ErrorType.PROVIDER_RATE_LIMIT if rate_limited else ErrorType.PROVIDER_FAILURE,
            message=f"{provider}/{model}: {message}",
            recoverable=True,
            details={"provider": provider, "model": model},
        ))
        self.provider = provider
        self.model = model
        self.rate_limited = rate_limited


# =============================================================================
# ACCESS / VALIDATION / STORAGE
# =============================================================================

class AccessDeniedError(ReclamAssurError):
    def __init__(self, message: str = "Accès refusé"):
        super().__init__(ErrorContext(error_type=ErrorType.ACCESS_DENIED, message=message))


class ValidationError(ReclamAssurError):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorContext(
            error_type=ErrorType.VALIDATION_FAILED,
            message=message,
            details=details,
        ))


class StorageError(ReclamAssurError):
    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(ErrorContext(
            error_type=ErrorType.STORAGE_FAILURE,
            message=message,
            recoverable=True,
            details={"path": path} if path else None,
        ))
