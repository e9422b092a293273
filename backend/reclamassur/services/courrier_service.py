"""
Courrier Service

Letter drafts: creation from a template or from AI output, the admin
validation workflow, final-content edits and deletion.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.db_models import (
    CourrierDB, DossierDB, ProfileDB, SourceCourrier, StatutCourrier, TypeCourrier
)
from ..models.letters import GenerationResult
from .audit_service import log_admin_action
from .template_service import TemplateService

logger = logging.getLogger(__name__)

# Allowed status transitions
COURRIER_TRANSITIONS = {
    StatutCourrier.EN_ATTENTE_VALIDATION: {
        StatutCourrier.VALIDE_PRET_ENVOI,
        StatutCourrier.MODIFIE_PRET_ENVOI,
        StatutCourrier.REJETE,
    },
    StatutCourrier.VALIDE_PRET_ENVOI: {StatutCourrier.ENVOYE, StatutCourrier.REJETE},
    StatutCourrier.MODIFIE_PRET_ENVOI: {StatutCourrier.ENVOYE, StatutCourrier.REJETE},
    StatutCourrier.REJETE: {StatutCourrier.EN_ATTENTE_VALIDATION},
    StatutCourrier.ENVOYE: set(),
}

VALIDATION_STATUSES = {StatutCourrier.VALIDE_PRET_ENVOI, StatutCourrier.MODIFIE_PRET_ENVOI}


def can_transition(current: StatutCourrier, target: StatutCourrier) -> bool:
    return target in COURRIER_TRANSITIONS.get(current, set())


class CourrierService:
    """Letter drafts attached to dossiers."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, courrier_id: str) -> CourrierDB:
        courrier = self.db.query(CourrierDB).filter(CourrierDB.id == courrier_id).first()
        if not courrier:
            raise NotFoundError("Courrier", courrier_id)
        return courrier

    def list_courriers(self, statut: Optional[StatutCourrier] = None,
                       dossier_id: Optional[str] = None) -> List[CourrierDB]:
        query = self.db.query(CourrierDB)
        if statut:
            query = query.filter(CourrierDB.statut == statut)
        if dossier_id:
            query = query.filter(CourrierDB.dossier_id == dossier_id)
        return query.order_by(CourrierDB.created_at.desc()).all()

    def _require_dossier(self, dossier_id: str) -> DossierDB:
        dossier = self.db.query(DossierDB).filter(DossierDB.id == dossier_id).first()
        if not dossier:
            raise NotFoundError("Dossier", dossier_id)
        return dossier

    # =========================================================================
    # CREATE
    # =========================================================================

    def _insert(self, dossier_id: str, type_courrier: TypeCourrier, contenu: str,
                source: SourceCourrier, **extra) -> CourrierDB:
        self._require_dossier(dossier_id)
        courrier = CourrierDB(
            id=str(uuid4()),
            dossier_id=dossier_id,
            type_courrier=type_courrier,
            contenu_genere=contenu,
            statut=StatutCourrier.EN_ATTENTE_VALIDATION,
            source=source,
            **extra,
        )
        self.db.add(courrier)
        self.db.commit()
        self.db.refresh(courrier)
        logger.info(f"Courrier {courrier.id} ({type_courrier.value}, {source.value}) created for dossier {dossier_id}")
        return courrier

    def create_from_template(self, dossier_id: str, template_id: str, type_courrier: TypeCourrier,
                             manual_values: Optional[Dict[str, str]] = None) -> CourrierDB:
        contenu = TemplateService(self.db).render(template_id, dossier_id, manual_values)
        return self._insert(
            dossier_id, type_courrier, contenu, SourceCourrier.TEMPLATE, template_id=template_id
        )

    def create_from_generation(self, dossier_id: str, type_courrier: TypeCourrier,
                               result: GenerationResult) -> CourrierDB:
        source = SourceCourrier.FALLBACK if result.used_fallback else SourceCourrier.AI
        return self._insert(
            dossier_id, type_courrier, result.content, source,
            ai_provider=result.provider, ai_model=result.model,
        )

    # =========================================================================
    # WORKFLOW
    # =========================================================================

    def update_status(self, admin: ProfileDB, courrier_id: str, statut: StatutCourrier,
                      numero_suivi: Optional[str] = None, reference_laposte: Optional[str] = None,
                      cout_envoi: Optional[float] = None) -> CourrierDB:
        """
        Move a letter to a new status.

        Validation statuses record the validating admin and date; "envoye"
        records the dispatch date and optional tracking details.
        """
        courrier = self.get(courrier_id)
        if not can_transition(courrier.statut, statut):
            raise ValidationError(
                f"Transition impossible: {courrier.statut.value} -> {statut.value}",
                details={"from": courrier.statut.value, "to": statut.value},
            )

        previous = courrier.statut
        courrier.statut = statut
        if statut in VALIDATION_STATUSES:
            courrier.admin_validateur = admin.id
            courrier.date_validation = datetime.utcnow()
        if statut == StatutCourrier.ENVOYE:
            courrier.date_envoi = datetime.utcnow()
            if numero_suivi is not None:
                courrier.numero_suivi = numero_suivi
            if reference_laposte is not None:
                courrier.reference_laposte = reference_laposte
            if cout_envoi is not None:
                courrier.cout_envoi = cout_envoi

        log_admin_action(
            self.db, admin.id, "update_courrier_status",
            details={"courrier_id": courrier_id, "from": previous.value, "to": statut.value},
        )
        self.db.commit()
        self.db.refresh(courrier)
        return courrier

    def edit_final_content(self, admin: ProfileDB, courrier_id: str, contenu_final: str) -> CourrierDB:
        """Store the admin-edited text and mark the letter modified and ready."""
        courrier = self.get(courrier_id)
        if courrier.statut == StatutCourrier.ENVOYE:
            raise ValidationError("Un courrier envoyé ne peut plus être modifié")
        if not contenu_final or not contenu_final.strip():
            raise ValidationError("Le contenu final ne peut pas être vide")

        courrier.contenu_final = contenu_final
        courrier.statut = StatutCourrier.MODIFIE_PRET_ENVOI
        courrier.admin_validateur = admin.id
        courrier.date_validation = datetime.utcnow()
        log_admin_action(self.db, admin.id, "edit_courrier", details={"courrier_id": courrier_id})
        self.db.commit()
        self.db.refresh(courrier)
        return courrier

    def delete(self, admin: ProfileDB, courrier_id: str) -> None:
        courrier = self.get(courrier_id)
        self.db.delete(courrier)
        log_admin_action(
            self.db, admin.id, "delete_courrier",
            details={"courrier_id": courrier_id, "dossier_id": courrier.dossier_id},
        )
        self.db.commit()
