"""
Variable Mapper

Builds the fixed name -> value mapping used to fill letter templates from a
dossier and its client profile. Amounts and dates are rendered the way French
letters write them.
"""
import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...models.db_models import DossierDB, ProfileDB, TypeSinistreDB

logger = logging.getLogger(__name__)


# Claim-type labels used before the catalog table existed
LEGACY_CLAIM_TYPE_LABELS = {
    "auto": "Automobile",
    "habitation": "Habitation",
    "sante": "Santé",
    "other": "Autre",
    "autre": "Autre",
}

FRENCH_DAYS = ["lundi", "mardi", "mercredi", "jeudi", "vendredi", "samedi", "dimanche"]
FRENCH_MONTHS = [
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
]

NARROW_NBSP = "\u202f"  # thousands separator
NBSP = "\u00a0"  # between amount and currency sign

UNSPECIFIED_REASON = "Non spécifié"

# Names produced by build_variable_mapping
AUTOMATIC_VARIABLES = (
    "nom_client", "prenom_client", "nom_famille_client", "email_client",
    "montant_refuse", "montant_refuse_chiffres",
    "date_sinistre", "date_sinistre_longue", "date_refus", "date_refus_longue",
    "police_number", "numero_police", "compagnie_assurance", "assureur",
    "motif_refus", "type_sinistre", "date_courrier", "date_courrier_longue",
)


# =============================================================================
# FORMATTING
# =============================================================================

def format_currency_eur(amount: Union[int, float, Decimal]) -> str:
    """1500.5 -> '1 500,50 €' (narrow no-break space grouping)."""
    quantized = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if quantized < 0 else ""
    integer_part, decimal_part = f"{abs(quantized):.2f}".split(".")

    groups = []
    while len(integer_part) > 3:
        groups.insert(0, integer_part[-3:])
        integer_part = integer_part[:-3]
    groups.insert(0, integer_part)

    return f"{sign}{NARROW_NBSP.join(groups)},{decimal_part}{NBSP}€"


def format_plain_number(amount: Union[int, float, Decimal]) -> str:
    """Bare number with no trailing zeros: 1500.5 -> '1500.5', 1500.0 -> '1500'."""
    value = float(amount)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _as_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def format_short_date(value: Union[date, datetime, str, None]) -> str:
    """dd/mm/yyyy"""
    d = _as_date(value)
    if d is None:
        return ""
    return d.strftime("%d/%m/%Y")


def format_long_date(value: Union[date, datetime, str, None]) -> str:
    """'lundi 15 janvier 2024'"""
    d = _as_date(value)
    if d is None:
        return ""
    return f"{FRENCH_DAYS[d.weekday()]} {d.day} {FRENCH_MONTHS[d.month - 1]} {d.year}"


# =============================================================================
# CLAIM TYPE LABEL
# =============================================================================

def resolve_claim_type_label(db: Optional[Session], code: str) -> str:
    """
    Human-readable label for a claim-type code.

    Active catalog entry first, then the legacy table, then the code itself.
    A failing catalog query is logged and treated as "no entry".
    """
    if db is not None:
        try:
            entry = db.query(TypeSinistreDB).filter(
                TypeSinistreDB.code == code,
                TypeSinistreDB.actif == True  # noqa: E712
            ).first()
            if entry and entry.libelle:
                return entry.libelle
        except SQLAlchemyError as e:
            logger.warning(f"Claim type lookup failed for '{code}': {e}")

    return LEGACY_CLAIM_TYPE_LABELS.get(code, code)


# =============================================================================
# MAPPING
# =============================================================================

def build_variable_mapping(
    dossier: DossierDB,
    profile: Optional[ProfileDB] = None,
    claim_type_label: Optional[str] = None,
    today: Optional[date] = None,
) -> Dict[str, str]:
    """
    Variable name -> rendered value for a dossier.

    Args:
        dossier: The dossier row
        profile: Client profile (defaults to dossier.profile)
        claim_type_label: Pre-resolved label; falls back to the legacy table
        today: Letter date (defaults to today)
    """
    profile = profile if profile is not None else dossier.profile
    today = today or date.today()

    first_name = (profile.first_name if profile else None) or ""
    last_name = (profile.last_name if profile else None) or ""
    email = (profile.email if profile else None) or ""

    if claim_type_label is None:
        claim_type_label = LEGACY_CLAIM_TYPE_LABELS.get(dossier.type_sinistre, dossier.type_sinistre)

    amount = dossier.montant_refuse if dossier.montant_refuse is not None else 0

    return {
        "nom_client": f"{first_name} {last_name}",
        "prenom_client": first_name,
        "nom_famille_client": last_name,
        "email_client": email,
        "montant_refuse": format_currency_eur(amount),
        "montant_refuse_chiffres": format_plain_number(amount),
        "date_sinistre": format_short_date(dossier.date_sinistre),
        "date_sinistre_longue": format_long_date(dossier.date_sinistre),
        "date_refus": format_short_date(dossier.refus_date),
        "date_refus_longue": format_long_date(dossier.refus_date),
        "police_number": dossier.police_number or "",
        "numero_police": dossier.police_number or "",
        "compagnie_assurance": dossier.compagnie_assurance or "",
        "assureur": dossier.compagnie_assurance or "",
        "motif_refus": dossier.motif_refus or UNSPECIFIED_REASON,
        "type_sinistre": claim_type_label or "",
        "date_courrier": format_short_date(today),
        "date_courrier_longue": format_long_date(today),
    }


def build_mapping_for_dossier(db: Session, dossier: DossierDB, today: Optional[date] = None) -> Dict[str, str]:
    """Mapping with the claim-type label resolved against the catalog."""
    label = resolve_claim_type_label(db, dossier.type_sinistre)
    return build_variable_mapping(dossier, claim_type_label=label, today=today)
