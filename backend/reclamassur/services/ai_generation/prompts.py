"""
Prompt builders for AI letter generation.

The system prompt is provider-agnostic: role, objective per letter type,
tone, target length band and the fixed seven-part outline.
"""
import json
from typing import Optional

from ...models.db_models import DossierDB
from ...models.letters import DocumentRef, GenerationContext, Length, Tone
from ..templating.variables import format_plain_number

LETTER_OBJECTIVES = {
    "reclamation_interne": "Rédiger une réclamation interne ferme mais respectueuse pour contester le refus de prise en charge",
    "mediation": "Rédiger une demande de médiation professionnelle et structurée",
    "mise_en_demeure": "Rédiger une mise en demeure juridique formelle et précise",
}
DEFAULT_OBJECTIVE = "Rédiger un courrier professionnel"

TONE_INSTRUCTIONS = {
    Tone.FERME: "Ferme mais respectueux, assertif",
    Tone.DIPLOMATIQUE: "Diplomatique et courtois",
}

LENGTH_INSTRUCTIONS = {
    Length.COURT: "Concis (300-400 mots)",
    Length.MOYEN: "Moyen (400-600 mots)",
    Length.LONG: "Détaillé (600-800 mots)",
}

LETTER_STRUCTURE = [
    "En-tête avec coordonnées",
    "Objet clair",
    "Références du dossier",
    "Contexte factuel",
    "Arguments juridiques pertinents",
    "Demande précise",
    "Formule de politesse",
]

WRITING_RULES = [
    "Utilisez un français juridique précis",
    "Citez les articles de loi pertinents quand approprié",
    "Restez factuel et argumenté",
    "Évitez l'émotionnel",
    "Structurez clairement vos arguments",
]


def build_system_prompt(type_courrier: str, tone: Tone = Tone.FERME, length: Length = Length.MOYEN) -> str:
    objective = LETTER_OBJECTIVES.get(type_courrier, DEFAULT_OBJECTIVE)
    structure = "\n".join(f"{i}. {step}" for i, step in enumerate(LETTER_STRUCTURE, start=1))
    rules = "\n".join(f"- {rule}" for rule in WRITING_RULES)

    return (
        "Vous êtes un expert juridique spécialisé dans les assurances. "
        "Votre mission est de rédiger des courriers professionnels pour contester des refus d'assurance.\n"
        "\n"
        f"OBJECTIF: {objective}\n"
        "\n"
        "PARAMÈTRES:\n"
        f"- Ton: {TONE_INSTRUCTIONS[Tone(tone)]}\n"
        f"- Longueur: {LENGTH_INSTRUCTIONS[Length(length)]}\n"
        "\n"
        "STRUCTURE REQUISE:\n"
        f"{structure}\n"
        "\n"
        "RÈGLES:\n"
        f"{rules}"
    )


def build_user_prompt(context: GenerationContext) -> str:
    documents = ", ".join(d.nom for d in context.documents) or "Aucun"
    lines = [
        "Contexte du dossier:",
        f"- Client: {context.client}",
        f"- Email: {context.email}",
        f"- Type de sinistre: {context.type_sinistre}",
        f"- Date du sinistre: {context.date_sinistre}",
        f"- Montant refusé: {_amount(context.montant_refuse)} €",
        f"- Date de refus: {context.refus_date}",
        f"- Numéro de police: {context.police_number}",
        f"- Compagnie d'assurance: {context.compagnie_assurance}",
        f"- Motif de refus: {context.motif_refus or 'Non spécifié'}",
        f"- Documents fournis: {documents}",
    ]
    if context.adresse_assureur:
        lines.append(f"- Adresse assureur: {json.dumps(context.adresse_assureur, ensure_ascii=False)}")
    lines.append("")
    lines.append("Rédigez le courrier complet en tenant compte de tous ces éléments.")
    return "\n".join(lines)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _amount(value) -> str:
    return format_plain_number(value) if value is not None else "N/A"


def build_generation_context(dossier: DossierDB) -> GenerationContext:
    """Case facts from a dossier loaded with its profile and documents."""
    profile = dossier.profile
    return GenerationContext(
        client=f"{profile.first_name or 'N/A'} {profile.last_name or 'N/A'}",
        email=profile.email or "N/A",
        type_sinistre=dossier.type_sinistre,
        date_sinistre=_iso(dossier.date_sinistre),
        montant_refuse=dossier.montant_refuse,
        refus_date=_iso(dossier.refus_date),
        police_number=dossier.police_number,
        compagnie_assurance=dossier.compagnie_assurance,
        motif_refus=dossier.motif_refus,
        documents=[
            DocumentRef(nom=doc.nom_fichier, type=getattr(doc.type_document, "value", doc.type_document))
            for doc in (dossier.documents or [])
        ],
        adresse_assureur=dossier.adresse_assureur,
    )
