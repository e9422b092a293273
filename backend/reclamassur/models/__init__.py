"""ReclamAssur - Data Models"""
from .letters import (
    # Enums
    Tone, Length, ProviderName,
    # Templating
    TemplateVariable, TemplateAnalysis,
    # AI generation
    DocumentRef, GenerationContext, GenerationRequest, AttemptRecord, GenerationResult,
)
from .schemas import InsurerAddress, ClaimSubmission, TemplateVariables

__all__ = [
    "Tone", "Length", "ProviderName",
    "TemplateVariable", "TemplateAnalysis",
    "DocumentRef", "GenerationContext", "GenerationRequest", "AttemptRecord", "GenerationResult",
    "InsurerAddress", "ClaimSubmission", "TemplateVariables",
]
