"""
Payment records mirrored from the payment provider.
"""
import logging
from typing import Dict, List, Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..models.db_models import PaiementDB, StatutPaiement, TypeFacturation

logger = logging.getLogger(__name__)


class PaymentService:

    def __init__(self, db: Session):
        self.db = db

    def record(self, client_id: str, stripe_payment_intent_id: str, montant: float,
               type_facturation: TypeFacturation, dossier_id: Optional[str] = None,
               devise: str = "eur", statut: StatutPaiement = StatutPaiement.PENDING,
               description: Optional[str] = None, metadata: Optional[dict] = None) -> PaiementDB:
        if montant <= 0:
            raise ValidationError("Le montant du paiement doit être positif")
        paiement = PaiementDB(
            id=str(uuid4()),
            client_id=client_id,
            dossier_id=dossier_id,
            stripe_payment_intent_id=stripe_payment_intent_id,
            montant=montant,
            devise=devise.lower(),
            type_facturation=type_facturation,
            statut=statut,
            description=description,
            payment_metadata=metadata or {},
        )
        self.db.add(paiement)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ValidationError(f"Paiement déjà enregistré: {stripe_payment_intent_id}") from e
        self.db.refresh(paiement)
        logger.info(f"Payment {stripe_payment_intent_id} recorded ({montant} {devise})")
        return paiement

    def update_status(self, paiement_id: str, statut: StatutPaiement) -> PaiementDB:
        paiement = self.db.query(PaiementDB).filter(PaiementDB.id == paiement_id).first()
        if not paiement:
            raise NotFoundError("Paiement", paiement_id)
        paiement.statut = statut
        self.db.commit()
        self.db.refresh(paiement)
        return paiement

    def list_payments(self, statut: Optional[StatutPaiement] = None,
                      client_id: Optional[str] = None) -> List[PaiementDB]:
        query = self.db.query(PaiementDB)
        if statut:
            query = query.filter(PaiementDB.statut == statut)
        if client_id:
            query = query.filter(PaiementDB.client_id == client_id)
        return query.order_by(PaiementDB.created_at.desc()).all()

    def succeeded_totals(self) -> Dict[str, float]:
        """Sum of succeeded payments per currency."""
        rows = self.db.query(PaiementDB.devise, func.sum(PaiementDB.montant)).filter(
            PaiementDB.statut == StatutPaiement.SUCCEEDED
        ).group_by(PaiementDB.devise).all()
        return {devise: float(total or 0) for devise, total in rows}
