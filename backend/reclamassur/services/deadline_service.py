"""
Deadline Service

Tracks legal deadlines ("échéances") attached to dossiers.

Key behaviors:
- Default limit dates per deadline type, counted from a reference date
- Alert date defaults to one week before the limit
- Active deadlines past their limit are marked expired by expire_overdue()
"""
import logging
from datetime import date, timedelta
from typing import Dict, List, Optional
from uuid import uuid4

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.db_models import DossierDB, EcheanceDB, StatutEcheance, TypeEcheance

logger = logging.getLogger(__name__)


# =============================================================================
# DEADLINE CONFIGURATION
# =============================================================================

DEADLINE_CONFIG = {
    TypeEcheance.REPONSE_RECLAMATION: {
        "delta": relativedelta(months=2),
        "description": "Délai de réponse de l'assureur à la réclamation (2 mois)",
    },
    TypeEcheance.DELAI_MEDIATION: {
        "delta": relativedelta(days=90),
        "description": "Délai d'avis du médiateur (90 jours)",
    },
    TypeEcheance.PRESCRIPTION_BIENNALE: {
        "delta": relativedelta(years=2),
        "description": "Prescription biennale (article L. 114-1 du Code des assurances)",
    },
}

ALERT_LEAD_DAYS = 7


def default_limit_date(type_echeance: TypeEcheance, reference: date) -> date:
    return reference + DEADLINE_CONFIG[type_echeance]["delta"]


class DeadlineService:
    """CRUD and sweeps over echeances."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, dossier_id: str, type_echeance: TypeEcheance, date_limite: Optional[date] = None,
               date_alerte: Optional[date] = None, description: Optional[str] = None) -> EcheanceDB:
        """
        Create a deadline. Without a limit date, the default for the type is
        counted from the dossier's refusal date.
        """
        dossier = self.db.query(DossierDB).filter(DossierDB.id == dossier_id).first()
        if not dossier:
            raise NotFoundError("Dossier", dossier_id)

        if date_limite is None:
            date_limite = default_limit_date(type_echeance, dossier.refus_date)
        if date_alerte is None:
            date_alerte = date_limite - timedelta(days=ALERT_LEAD_DAYS)
        if date_alerte > date_limite:
            raise ValidationError("La date d'alerte doit précéder la date limite")

        echeance = EcheanceDB(
            id=str(uuid4()),
            dossier_id=dossier_id,
            type_echeance=type_echeance,
            date_limite=date_limite,
            date_alerte=date_alerte,
            description=description or DEADLINE_CONFIG[type_echeance]["description"],
            statut=StatutEcheance.ACTIF,
        )
        self.db.add(echeance)
        self.db.commit()
        self.db.refresh(echeance)
        logger.info(f"Echeance {type_echeance.value} for dossier {dossier_id} due {date_limite}")
        return echeance

    def update_status(self, echeance_id: str, statut: StatutEcheance) -> EcheanceDB:
        echeance = self.db.query(EcheanceDB).filter(EcheanceDB.id == echeance_id).first()
        if not echeance:
            raise NotFoundError("Échéance", echeance_id)
        echeance.statut = statut
        self.db.commit()
        self.db.refresh(echeance)
        return echeance

    def list_echeances(self, statut: Optional[StatutEcheance] = None,
                       dossier_id: Optional[str] = None) -> List[EcheanceDB]:
        query = self.db.query(EcheanceDB)
        if statut:
            query = query.filter(EcheanceDB.statut == statut)
        if dossier_id:
            query = query.filter(EcheanceDB.dossier_id == dossier_id)
        return query.order_by(EcheanceDB.date_limite.asc()).all()

    def due_alerts(self, today: Optional[date] = None) -> List[EcheanceDB]:
        """Active deadlines whose alert date has been reached."""
        today = today or date.today()
        return self.db.query(EcheanceDB).filter(
            EcheanceDB.statut == StatutEcheance.ACTIF,
            EcheanceDB.date_alerte <= today,
        ).order_by(EcheanceDB.date_limite.asc()).all()

    def mark_notified(self, echeance_ids: List[str]) -> int:
        count = self.db.query(EcheanceDB).filter(
            EcheanceDB.id.in_(echeance_ids)
        ).update({EcheanceDB.notifie: True}, synchronize_session=False)
        self.db.commit()
        return count

    def expire_overdue(self, today: Optional[date] = None) -> Dict[str, int]:
        """Mark active deadlines whose limit date has passed as expired."""
        today = today or date.today()
        count = self.db.query(EcheanceDB).filter(
            EcheanceDB.statut == StatutEcheance.ACTIF,
            EcheanceDB.date_limite < today,
        ).update({EcheanceDB.statut: StatutEcheance.EXPIRE}, synchronize_session=False)
        self.db.commit()
        if count:
            logger.info(f"Expired {count} overdue echeances")
        return {"expired": count}
