"""
ReclamAssur - Admin Router
Back office: dossiers, letter templates, catalogs, deadlines, payments,
users and invitations, audit trails and runtime configuration.
All endpoints require the admin role.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..models.db_models import (
    AppRole, ConfigType, CourrierDB, DossierDB, EcheanceDB, ProfileDB,
    StatutCourrier, StatutDossier, StatutEcheance, StatutPaiement,
    TypeEcheance, TypeFacturation
)
from ..models.schemas import InsurerAddress
from ..services.audit_service import list_activity_logs, list_admin_audit_log
from ..services.catalog_service import CatalogService
from ..services.configuration_service import ConfigurationService, coerce_value
from ..services.deadline_service import DeadlineService
from ..services.dossier_service import DossierService
from ..services.payment_service import PaymentService
from ..services.storage import LocalObjectStorage, get_storage
from ..services.template_service import TemplateService
from ..services.user_service import UserService
from .dossiers import DossierResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class DashboardStats(BaseModel):
    """Back-office dashboard counters."""
    dossiers_total: int
    dossiers_by_status: Dict[str, int]
    courriers_pending_validation: int
    echeances_actives: int
    paiements_succeeded: Dict[str, float]  # currency -> total


class AdminDossierUpdate(BaseModel):
    type_sinistre: Optional[str] = None
    date_sinistre: Optional[date] = None
    refus_date: Optional[date] = None
    montant_refuse: Optional[float] = None
    police_number: Optional[str] = None
    compagnie_assurance: Optional[str] = None
    motif_refus: Optional[str] = None
    description: Optional[str] = None
    adresse_assureur: Optional[InsurerAddress] = None
    statut: Optional[StatutDossier] = None


class DossierDeleteResponse(BaseModel):
    success: bool
    dossier_id: str
    cascade: Dict[str, int]


class TemplateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    nom_modele: str
    template_content: str
    type_sinistre: str
    type_courrier: str
    variables_requises: List[str]
    actif: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TemplateCreateRequest(BaseModel):
    nom_modele: str
    template_content: str
    type_sinistre: str
    type_courrier: str
    variables_requises: Optional[List[str]] = None
    actif: bool = True


class TemplateUpdateRequest(BaseModel):
    nom_modele: Optional[str] = None
    template_content: Optional[str] = None
    type_sinistre: Optional[str] = None
    type_courrier: Optional[str] = None
    variables_requises: Optional[List[str]] = None
    actif: Optional[bool] = None


class ActiveToggleRequest(BaseModel):
    actif: bool


class TemplatePreviewRequest(BaseModel):
    dossier_id: str
    manual_values: Dict[str, str] = {}


class TemplateVariableItem(BaseModel):
    key: str
    value: str
    required: bool


class TemplateAnalysisResponse(BaseModel):
    automatic: List[TemplateVariableItem]
    manual: List[TemplateVariableItem]


class TemplateRenderResponse(BaseModel):
    content: str


class CatalogEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    code: str
    libelle: str
    description: Optional[str] = None
    actif: bool
    ordre_affichage: int


class CatalogEntryCreate(BaseModel):
    code: str
    libelle: str
    description: Optional[str] = None
    actif: bool = True
    ordre_affichage: int = 0


class CatalogEntryUpdate(BaseModel):
    code: Optional[str] = None
    libelle: Optional[str] = None
    description: Optional[str] = None
    actif: Optional[bool] = None
    ordre_affichage: Optional[int] = None


class MappingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type_sinistre_id: str
    type_courrier_id: str
    actif: bool


class MappingRequest(BaseModel):
    type_sinistre_id: str
    type_courrier_id: str
    actif: bool = True


class EcheanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    dossier_id: str
    type_echeance: TypeEcheance
    date_limite: date
    date_alerte: date
    description: Optional[str] = None
    statut: StatutEcheance
    notifie: Optional[bool] = False


class EcheanceCreateRequest(BaseModel):
    dossier_id: str
    type_echeance: TypeEcheance
    date_limite: Optional[date] = None
    date_alerte: Optional[date] = None
    description: Optional[str] = None


class EcheanceStatusRequest(BaseModel):
    statut: StatutEcheance


class PaiementResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    dossier_id: Optional[str] = None
    stripe_payment_intent_id: str
    montant: float
    devise: str
    type_facturation: TypeFacturation
    statut: StatutPaiement
    description: Optional[str] = None
    payment_metadata: Optional[dict] = None
    created_at: Optional[datetime] = None


class PaiementCreateRequest(BaseModel):
    client_id: str
    stripe_payment_intent_id: str
    montant: float
    type_facturation: TypeFacturation
    dossier_id: Optional[str] = None
    devise: str = "eur"
    statut: StatutPaiement = StatutPaiement.PENDING
    description: Optional[str] = None
    metadata: Optional[dict] = None


class PaiementStatusRequest(BaseModel):
    statut: StatutPaiement


class RoleChangeRequest(BaseModel):
    role: AppRole


class InvitationRequest(BaseModel):
    email: str


class InvitationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    invite_code: str
    expires_at: datetime
    used_at: Optional[datetime] = None
    used_by: Optional[str] = None
    created_at: Optional[datetime] = None


class ActivityLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: Optional[str] = None
    dossier_id: Optional[str] = None
    document_id: Optional[str] = None
    action: str
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: Optional[datetime] = None


class ConfigurationResponse(BaseModel):
    cle: str
    valeur: str
    type: ConfigType
    value: Any = None  # typed value
    description: Optional[str] = None
    modifiable: bool
    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None


class ConfigurationUpdateRequest(BaseModel):
    valeur: str


class WebhookLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    webhook_url: str
    payload: Optional[dict] = None
    status: str
    attempt_number: Optional[int] = None
    response_body: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None


def _configuration_response(entry) -> ConfigurationResponse:
    try:
        value = coerce_value(entry.valeur, entry.type)
    except ValueError:
        value = None
    return ConfigurationResponse(
        cle=entry.cle,
        valeur=entry.valeur,
        type=entry.type,
        value=value,
        description=entry.description,
        modifiable=bool(entry.modifiable),
        updated_by=entry.updated_by,
        updated_at=entry.updated_at,
    )


# =============================================================================
# DASHBOARD
# =============================================================================

@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Dossier counts by status, pending letters, active deadlines, revenue."""
    rows = db.query(DossierDB.statut, func.count(DossierDB.id)).group_by(DossierDB.statut).all()
    by_status = {s.value: 0 for s in StatutDossier}
    for statut, count in rows:
        by_status[statut.value] = count

    pending = db.query(func.count(CourrierDB.id)).filter(
        CourrierDB.statut == StatutCourrier.EN_ATTENTE_VALIDATION
    ).scalar() or 0
    active_deadlines = db.query(func.count(EcheanceDB.id)).filter(
        EcheanceDB.statut == StatutEcheance.ACTIF
    ).scalar() or 0

    return DashboardStats(
        dossiers_total=sum(by_status.values()),
        dossiers_by_status=by_status,
        courriers_pending_validation=pending,
        echeances_actives=active_deadlines,
        paiements_succeeded=PaymentService(db).succeeded_totals(),
    )


# =============================================================================
# DOSSIERS
# =============================================================================

@router.get("/dossiers", response_model=List[DossierResponse])
async def list_dossiers(
    statut: Optional[StatutDossier] = Query(None),
    type_sinistre: Optional[str] = Query(None),
    search: Optional[str] = Query(None, description="Insurer, policy number, client email or name"),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return DossierService(db).list_all(statut=statut, type_sinistre=type_sinistre, search=search)


@router.put("/dossiers/{dossier_id}", response_model=DossierResponse)
async def update_dossier(
    dossier_id: str,
    request: AdminDossierUpdate,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return DossierService(db).update_by_admin(admin, dossier_id, request.model_dump(exclude_unset=True))


@router.delete("/dossiers/{dossier_id}", response_model=DossierDeleteResponse)
async def delete_dossier(
    dossier_id: str,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db),
    storage: LocalObjectStorage = Depends(get_storage)
):
    """
    Hard delete a dossier with its letters, deadlines, documents (rows and
    stored files) and payments.
    """
    cascade = DossierService(db, storage=storage).delete_dossier(admin, dossier_id)
    if cascade is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Dossier introuvable")

    logger.info(f"Admin {admin.id} deleted dossier {dossier_id}: {cascade}")
    return DossierDeleteResponse(success=True, dossier_id=dossier_id, cascade=cascade)


# =============================================================================
# LETTER TEMPLATES
# =============================================================================

@router.get("/templates", response_model=List[TemplateResponse])
async def list_templates(
    type_sinistre: Optional[str] = Query(None),
    type_courrier: Optional[str] = Query(None),
    actif: Optional[bool] = Query(None),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return TemplateService(db).list_templates(type_sinistre, type_courrier, actif)


@router.get("/templates/available", response_model=List[TemplateResponse])
async def available_templates(
    type_sinistre: str = Query(...),
    type_courrier: str = Query(...),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Active templates for a claim type and letter type, newest first."""
    return TemplateService(db).available_templates(type_sinistre, type_courrier)


@router.post("/templates", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    request: TemplateCreateRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return TemplateService(db).create(admin, **request.model_dump())


@router.put("/templates/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    request: TemplateUpdateRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return TemplateService(db).update(admin, template_id, request.model_dump(exclude_unset=True))


@router.put("/templates/{template_id}/active", response_model=TemplateResponse)
async def toggle_template(
    template_id: str,
    request: ActiveToggleRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return TemplateService(db).set_active(admin, template_id, request.actif)


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_template(
    template_id: str,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    TemplateService(db).delete(admin, template_id)


@router.post("/templates/{template_id}/analyze", response_model=TemplateAnalysisResponse)
async def analyze_template(
    template_id: str,
    request: TemplatePreviewRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Split the template's variables into those filled from the dossier and
    those the admin must type in.
    """
    analysis = TemplateService(db).analyze(template_id, request.dossier_id)
    return TemplateAnalysisResponse(
        automatic=[TemplateVariableItem(**v.to_dict()) for v in analysis.automatic],
        manual=[TemplateVariableItem(**v.to_dict()) for v in analysis.manual],
    )


@router.post("/templates/{template_id}/render", response_model=TemplateRenderResponse)
async def render_template(
    template_id: str,
    request: TemplatePreviewRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    content = TemplateService(db).render(template_id, request.dossier_id, request.manual_values)
    return TemplateRenderResponse(content=content)


# =============================================================================
# CATALOGS
# =============================================================================

@router.get("/catalog/claim-types", response_model=List[CatalogEntryResponse])
async def list_claim_types(
    active_only: bool = Query(False),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return CatalogService(db).list_claim_types(active_only)


@router.post("/catalog/claim-types", response_model=CatalogEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_claim_type(
    request: CatalogEntryCreate,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return CatalogService(db).create_claim_type(admin, request.model_dump())


@router.put("/catalog/claim-types/{entry_id}", response_model=CatalogEntryResponse)
async def update_claim_type(
    entry_id: str,
    request: CatalogEntryUpdate,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return CatalogService(db).update_claim_type(admin, entry_id, request.model_dump(exclude_unset=True))


@router.delete("/catalog/claim-types/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_claim_type(
    entry_id: str,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    CatalogService(db).delete_claim_type(admin, entry_id)


@router.get("/catalog/letter-types", response_model=List[CatalogEntryResponse])
async def list_letter_types(
    active_only: bool = Query(False),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return CatalogService(db).list_letter_types(active_only)


@router.post("/catalog/letter-types", response_model=CatalogEntryResponse, status_code=status.HTTP_201_CREATED)
async def create_letter_type(
    request: CatalogEntryCreate,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return CatalogService(db).create_letter_type(admin, request.model_dump())


@router.put("/catalog/letter-types/{entry_id}", response_model=CatalogEntryResponse)
async def update_letter_type(
    entry_id: str,
    request: CatalogEntryUpdate,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return CatalogService(db).update_letter_type(admin, entry_id, request.model_dump(exclude_unset=True))


@router.delete("/catalog/letter-types/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_letter_type(
    entry_id: str,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    CatalogService(db).delete_letter_type(admin, entry_id)


@router.get("/catalog/mappings", response_model=List[MappingResponse])
async def list_mappings(
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return CatalogService(db).list_mappings()


@router.put("/catalog/mappings", response_model=MappingResponse)
async def set_mapping(
    request: MappingRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Enable or disable a letter type for a claim type."""
    return CatalogService(db).set_mapping(
        admin, request.type_sinistre_id, request.type_courrier_id, request.actif
    )


@router.get("/catalog/compatible/{claim_code}", response_model=List[CatalogEntryResponse])
async def compatible_letter_types(
    claim_code: str,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return CatalogService(db).compatible_letter_types(claim_code)


# =============================================================================
# DEADLINES
# =============================================================================

@router.get("/echeances", response_model=List[EcheanceResponse])
async def list_echeances(
    statut: Optional[StatutEcheance] = Query(None),
    dossier_id: Optional[str] = Query(None),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return DeadlineService(db).list_echeances(statut=statut, dossier_id=dossier_id)


@router.get("/echeances/alerts", response_model=List[EcheanceResponse])
async def due_alerts(
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Active deadlines whose alert date has been reached."""
    return DeadlineService(db).due_alerts()


@router.post("/echeances", response_model=EcheanceResponse, status_code=status.HTTP_201_CREATED)
async def create_echeance(
    request: EcheanceCreateRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return DeadlineService(db).create(**request.model_dump())


@router.put("/echeances/{echeance_id}/status", response_model=EcheanceResponse)
async def update_echeance_status(
    echeance_id: str,
    request: EcheanceStatusRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return DeadlineService(db).update_status(echeance_id, request.statut)


@router.post("/echeances/expire")
async def expire_overdue(
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return DeadlineService(db).expire_overdue()


# =============================================================================
# PAYMENTS
# =============================================================================

@router.get("/paiements", response_model=List[PaiementResponse])
async def list_paiements(
    statut: Optional[StatutPaiement] = Query(None),
    client_id: Optional[str] = Query(None),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return PaymentService(db).list_payments(statut=statut, client_id=client_id)


@router.post("/paiements", response_model=PaiementResponse, status_code=status.HTTP_201_CREATED)
async def record_paiement(
    request: PaiementCreateRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return PaymentService(db).record(**request.model_dump())


@router.put("/paiements/{paiement_id}/status", response_model=PaiementResponse)
async def update_paiement_status(
    paiement_id: str,
    request: PaiementStatusRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return PaymentService(db).update_status(paiement_id, request.statut)


# =============================================================================
# USERS AND INVITATIONS
# =============================================================================

@router.get("/users")
async def list_users(
    search: Optional[str] = Query(None),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return UserService(db).list_users(search)


@router.put("/users/{user_id}/role")
async def change_user_role(
    user_id: str,
    request: RoleChangeRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    row = UserService(db).change_role(admin, user_id, request.role)
    return {"user_id": row.user_id, "role": row.role.value}


@router.get("/invitations", response_model=List[InvitationResponse])
async def list_invitations(
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return UserService(db).list_invitations()


@router.post("/invitations", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED)
async def create_invitation(
    request: InvitationRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """Create a single-use admin invitation code, valid for 7 days."""
    return UserService(db).generate_admin_invite(admin, request.email)


# =============================================================================
# AUDIT, CONFIGURATION, WEBHOOKS
# =============================================================================

@router.get("/audit-log")
async def get_audit_log(
    limit: int = Query(100, ge=1, le=500),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_admin_audit_log(db, limit=limit)


@router.get("/activity-logs", response_model=List[ActivityLogResponse])
async def get_activity_logs(
    action: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    dossier_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return list_activity_logs(db, action=action, user_id=user_id, dossier_id=dossier_id, limit=limit)


@router.get("/configuration", response_model=List[ConfigurationResponse])
async def list_configuration(
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return [_configuration_response(e) for e in ConfigurationService(db).list_entries()]


@router.put("/configuration/{cle}", response_model=ConfigurationResponse)
async def update_configuration(
    cle: str,
    request: ConfigurationUpdateRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    entry = ConfigurationService(db).update_value(admin, cle, request.valeur)
    return _configuration_response(entry)


@router.get("/webhook-logs", response_model=List[WebhookLogResponse])
async def list_webhook_logs(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return ConfigurationService(db).list_webhook_logs(status=status_filter, limit=limit)
