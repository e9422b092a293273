"""
Dossier Service

Claim submission, dossier edits and the admin cascade delete.
"""
import logging
import time
from typing import Callable, Dict, List, Optional
from uuid import uuid4

import pydantic
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from ..errors import AccessDeniedError, NotFoundError, ValidationError
from ..models.db_models import (
    CourrierDB, DocumentDB, DossierDB, EcheanceDB, PaiementDB, ProfileDB, StatutDossier
)
from ..models.schemas import ClaimSubmission, InsurerAddress
from .audit_service import log_admin_action
from .storage import LocalObjectStorage
from .user_service import is_admin

logger = logging.getLogger(__name__)

CREATE_ATTEMPTS = 3
DEFAULT_INSURER = "Non spécifiée"
DEFAULT_POLICY = "Non spécifié"

# Fields a client may edit on their own dossier
CLIENT_EDITABLE_FIELDS = {
    "type_sinistre", "date_sinistre", "refus_date", "montant_refuse", "police_number",
    "compagnie_assurance", "motif_refus", "description", "adresse_assureur",
}
ADMIN_EDITABLE_FIELDS = CLIENT_EDITABLE_FIELDS | {"statut"}


def map_contract_type(contract_type: str) -> str:
    """Free-text contract type from the claim form -> claim-type code."""
    lowered = (contract_type or "").lower()
    if "auto" in lowered or "vehicule" in lowered or "véhicule" in lowered:
        return "auto"
    if "habitation" in lowered or "logement" in lowered or "maison" in lowered:
        return "habitation"
    if "sante" in lowered or "santé" in lowered or "medic" in lowered or "médic" in lowered or "soin" in lowered:
        return "sante"
    return "autre"


class DossierService:
    """Dossier creation, edits, listing and deletion."""

    def __init__(self, db: Session, storage: Optional[LocalObjectStorage] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.db = db
        self.storage = storage
        self.sleep = sleep

    # =========================================================================
    # CREATE
    # =========================================================================

    def create_from_claim(self, user: ProfileDB, submission: ClaimSubmission) -> DossierDB:
        """
        Insert a dossier from a validated claim form.

        Missing insurer or policy number get placeholder values. Transient
        database errors are retried a bounded number of times.
        """
        if submission.phone and not user.phone:
            user.phone = submission.phone
        if not user.first_name:
            user.first_name = submission.first_name
        if not user.last_name:
            user.last_name = submission.last_name

        for attempt in range(1, CREATE_ATTEMPTS + 1):
            dossier = DossierDB(
                id=str(uuid4()),
                client_id=user.id,
                type_sinistre=map_contract_type(submission.contract_type),
                date_sinistre=submission.accident_date,
                refus_date=submission.refusal_date,
                montant_refuse=submission.claimed_amount,
                police_number=submission.policy_number or DEFAULT_POLICY,
                compagnie_assurance=submission.insurance_company or DEFAULT_INSURER,
                motif_refus=submission.refusal_reason or None,
                description=submission.description,
                adresse_assureur=submission.insurer_address.model_dump() if submission.insurer_address else None,
                statut=StatutDossier.NOUVEAU,
            )
            self.db.add(dossier)
            try:
                self.db.commit()
            except OperationalError as e:
                self.db.rollback()
                logger.warning(f"Dossier insert attempt {attempt}/{CREATE_ATTEMPTS} failed: {e}")
                if attempt == CREATE_ATTEMPTS:
                    raise
                self.sleep(0.5 * attempt)
                continue
            self.db.refresh(dossier)
            logger.info(f"Dossier {dossier.id} created for client {user.id} ({dossier.type_sinistre})")
            return dossier

    # =========================================================================
    # READ
    # =========================================================================

    def get_dossier(self, user: ProfileDB, dossier_id: str) -> DossierDB:
        """Dossier owned by the user, or any dossier for an admin."""
        dossier = self.db.query(DossierDB).filter(DossierDB.id == dossier_id).first()
        if not dossier:
            raise NotFoundError("Dossier", dossier_id)
        if dossier.client_id != user.id and not is_admin(self.db, user.id):
            raise AccessDeniedError("Accès au dossier refusé")
        return dossier

    def list_for_client(self, user: ProfileDB) -> List[DossierDB]:
        return self.db.query(DossierDB).filter(
            DossierDB.client_id == user.id
        ).order_by(DossierDB.created_at.desc()).all()

    def list_all(self, statut: Optional[StatutDossier] = None, type_sinistre: Optional[str] = None,
                 search: Optional[str] = None) -> List[DossierDB]:
        query = self.db.query(DossierDB)
        if statut:
            query = query.filter(DossierDB.statut == statut)
        if type_sinistre:
            query = query.filter(DossierDB.type_sinistre == type_sinistre)
        if search:
            pattern = f"%{search}%"
            query = query.join(ProfileDB, DossierDB.client_id == ProfileDB.id).filter(
                DossierDB.compagnie_assurance.ilike(pattern)
                | DossierDB.police_number.ilike(pattern)
                | ProfileDB.email.ilike(pattern)
                | ProfileDB.last_name.ilike(pattern)
            )
        return query.order_by(DossierDB.created_at.desc()).all()

    # =========================================================================
    # UPDATE
    # =========================================================================

    def _apply_updates(self, dossier: DossierDB, updates: Dict, allowed: set) -> None:
        for key, value in updates.items():
            if key not in allowed:
                continue
            if key == "adresse_assureur" and value is not None:
                try:
                    value = InsurerAddress.model_validate(value).model_dump()
                except pydantic.ValidationError as e:
                    raise ValidationError("Adresse assureur invalide", details={"errors": e.errors()}) from e
            setattr(dossier, key, value)

    def update_by_client(self, user: ProfileDB, dossier_id: str, updates: Dict) -> DossierDB:
        dossier = self.db.query(DossierDB).filter(
            DossierDB.id == dossier_id,
            DossierDB.client_id == user.id
        ).first()
        if not dossier:
            raise NotFoundError("Dossier", dossier_id)
        self._apply_updates(dossier, updates, CLIENT_EDITABLE_FIELDS)
        self.db.commit()
        self.db.refresh(dossier)
        return dossier

    def update_by_admin(self, admin: ProfileDB, dossier_id: str, updates: Dict) -> DossierDB:
        dossier = self.db.query(DossierDB).filter(DossierDB.id == dossier_id).first()
        if not dossier:
            raise NotFoundError("Dossier", dossier_id)
        self._apply_updates(dossier, updates, ADMIN_EDITABLE_FIELDS)
        log_admin_action(
            self.db, admin.id, "update_dossier", target_user_id=dossier.client_id,
            details={"dossier_id": dossier_id, "fields": sorted(k for k in updates if k in ADMIN_EDITABLE_FIELDS)},
        )
        self.db.commit()
        self.db.refresh(dossier)
        logger.info(f"Admin {admin.id} updated dossier {dossier_id}")
        return dossier

    # =========================================================================
    # DELETE
    # =========================================================================

    def delete_dossier(self, admin: ProfileDB, dossier_id: str) -> Optional[dict]:
        """
        Hard delete a dossier and everything attached to it.

        Deletion order:
        1. Letters (courriers_projets)
        2. Deadlines (echeances)
        3. Documents (rows, then their storage objects)
        4. Payments (paiements)
        5. The dossier

        Returns cascade counts, or None when the dossier does not exist.
        """
        dossier = self.db.query(DossierDB).filter(DossierDB.id == dossier_id).first()
        if not dossier:
            return None

        cascade = {
            "courriers": 0,
            "echeances": 0,
            "documents": 0,
            "paiements": 0,
            "storage_objects": 0,
        }

        storage_paths = [
            d.url_stockage for d in
            self.db.query(DocumentDB.url_stockage).filter(DocumentDB.dossier_id == dossier_id).all()
        ]

        cascade["courriers"] = self.db.query(CourrierDB).filter(
            CourrierDB.dossier_id == dossier_id
        ).delete(synchronize_session=False)

        cascade["echeances"] = self.db.query(EcheanceDB).filter(
            EcheanceDB.dossier_id == dossier_id
        ).delete(synchronize_session=False)

        cascade["documents"] = self.db.query(DocumentDB).filter(
            DocumentDB.dossier_id == dossier_id
        ).delete(synchronize_session=False)

        cascade["paiements"] = self.db.query(PaiementDB).filter(
            PaiementDB.dossier_id == dossier_id
        ).delete(synchronize_session=False)

        log_admin_action(
            self.db, admin.id, "delete_dossier", target_user_id=dossier.client_id,
            details={"dossier_id": dossier_id, **{k: v for k, v in cascade.items() if k != "storage_objects"}},
        )
        self.db.query(DossierDB).filter(DossierDB.id == dossier_id).delete(synchronize_session=False)
        self.db.commit()

        if self.storage and storage_paths:
            cascade["storage_objects"] = len(self.storage.remove(storage_paths))

        logger.info(f"Dossier {dossier_id} deleted by {admin.id}: {cascade}")
        return cascade
