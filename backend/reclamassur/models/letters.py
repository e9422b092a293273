"""
ReclamAssur - Letter Generation Models

Plain data structures passed between the templating engine, the AI
orchestrator and the routers.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# ENUMS
# =============================================================================

class Tone(str, Enum):
    FERME = "ferme"
    DIPLOMATIQUE = "diplomatique"


class Length(str, Enum):
    COURT = "court"
    MOYEN = "moyen"
    LONG = "long"


class ProviderName(str, Enum):
    GROQ = "groq"
    MISTRAL = "mistral"
    OPENAI = "openai"
    CLAUDE = "claude"
    AUTO = "auto"


# =============================================================================
# TEMPLATING
# =============================================================================

@dataclass
class TemplateVariable:
    """A placeholder found in a template, with its resolved (or empty) value."""
    key: str
    value: str = ""
    required: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "value": self.value, "required": self.required}


@dataclass
class TemplateAnalysis:
    """Partition of a template's placeholders into automatic and manual ones."""
    automatic: List[TemplateVariable] = field(default_factory=list)
    manual: List[TemplateVariable] = field(default_factory=list)

    @property
    def automatic_keys(self) -> List[str]:
        return [v.key for v in self.automatic]

    @property
    def manual_keys(self) -> List[str]:
        return [v.key for v in self.manual]


# =============================================================================
# AI GENERATION
# =============================================================================

@dataclass
class DocumentRef:
    nom: str
    type: str

    def to_dict(self) -> Dict[str, Any]:
        return {"nom": self.nom, "type": self.type}


@dataclass
class GenerationContext:
    """Case facts handed to the prompt builders and the static fallback."""
    client: str
    email: str
    type_sinistre: str
    date_sinistre: Optional[str]
    montant_refuse: Any
    refus_date: Optional[str]
    police_number: Optional[str]
    compagnie_assurance: Optional[str]
    motif_refus: Optional[str] = None
    documents: List[DocumentRef] = field(default_factory=list)
    adresse_assureur: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialized the way the generation endpoint reports it."""
        return {
            "client": self.client,
            "email": self.email,
            "typeSinistre": self.type_sinistre,
            "dateSinistre": self.date_sinistre,
            "montantRefuse": self.montant_refuse,
            "refusDate": self.refus_date,
            "policeNumber": self.police_number,
            "compagnieAssurance": self.compagnie_assurance,
            "motifRefus": self.motif_refus,
            "documents": [d.to_dict() for d in self.documents],
            "adresseAssureur": self.adresse_assureur,
        }


@dataclass
class GenerationRequest:
    dossier_id: str
    type_courrier: str
    tone: Tone = Tone.FERME
    length: Length = Length.MOYEN
    preferred_provider: ProviderName = ProviderName.AUTO


@dataclass
class AttemptRecord:
    provider: str
    model: str
    attempt: int
    error: Optional[str] = None
    rate_limited: bool = False


@dataclass
class GenerationResult:
    """Outcome of a generation call. used_fallback means no provider succeeded."""
    content: str
    provider: Optional[str] = None
    model: Optional[str] = None
    used_fallback: bool = False
    attempts: List[AttemptRecord] = field(default_factory=list)
    context: Optional[GenerationContext] = None
