"""
ReclamAssur - Boundary Schemas
Shapes validated where data enters the system (claim form, template save).
"""
import re
from datetime import date
from typing import List, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


# Valid template variable name
VARIABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def parse_form_date(value) -> date:
    """Parse a date coming from a form (ISO string or date)."""
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError("Date manquante")
    try:
        return date_parser.isoparse(value.strip()).date()
    except (ValueError, OverflowError):
        raise ValueError(f"Date invalide: {value}")


class InsurerAddress(BaseModel):
    """Postal address of the insurer, stored as JSON on the dossier."""
    rue: str
    code_postal: str
    ville: str
    pays: str = "France"
    complement: Optional[str] = None

    @field_validator('code_postal')
    @classmethod
    def validate_code_postal(cls, v):
        if not re.match(r'^\d{5}$', v.strip()):
            raise ValueError('Code postal invalide (5 chiffres attendus)')
        return v.strip()


class ClaimSubmission(BaseModel):
    """Claim form as submitted by the client (camelCase keys)."""
    model_config = ConfigDict(populate_by_name=True)

    contract_type: str = Field(alias="contractType", min_length=1)
    accident_date: date = Field(alias="accidentDate")
    refusal_date: date = Field(alias="refusalDate")
    claimed_amount: float = Field(alias="claimedAmount")
    first_name: str = Field(alias="firstName", min_length=1)
    last_name: str = Field(alias="lastName", min_length=1)
    email: EmailStr
    address: str = Field(min_length=1)
    phone: Optional[str] = None
    refusal_reason: Optional[str] = Field(default=None, alias="refusalReason")
    policy_number: Optional[str] = Field(default=None, alias="policyNumber")
    insurance_company: Optional[str] = Field(default=None, alias="insuranceCompany")
    description: Optional[str] = None
    insurer_address: Optional[InsurerAddress] = Field(default=None, alias="insurerAddress")

    @field_validator('contract_type', 'first_name', 'last_name', 'address')
    @classmethod
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('Champ requis')
        return v.strip()

    @field_validator('accident_date', 'refusal_date', mode='before')
    @classmethod
    def parse_dates(cls, v):
        return parse_form_date(v)

    @field_validator('claimed_amount', mode='before')
    @classmethod
    def parse_amount(cls, v):
        if isinstance(v, str):
            try:
                v = float(v.strip().replace(',', '.'))
            except ValueError:
                raise ValueError('Le montant réclamé doit être un nombre positif valide.')
        if v is None or v <= 0:
            raise ValueError('Le montant réclamé doit être un nombre positif valide.')
        return v


class TemplateVariables(BaseModel):
    """Validated variables_requises list for a template."""
    names: List[str]

    @field_validator('names')
    @classmethod
    def validate_names(cls, v):
        cleaned = []
        for name in v:
            if not isinstance(name, str) or not VARIABLE_NAME_PATTERN.match(name.strip()):
                raise ValueError(f'Nom de variable invalide: {name!r}')
            if name.strip() not in cleaned:
                cleaned.append(name.strip())
        return cleaned
