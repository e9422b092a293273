"""
AI letter generation for a dossier: fetch the case, build the prompts and run
the orchestrator.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...config import ProviderCredentials
from ...errors import DossierNotFoundError, MissingProfileError
from ...models.db_models import DossierDB
from ...models.letters import GenerationRequest, GenerationResult
from .orchestrator import AIOrchestrator
from .prompts import build_generation_context, build_system_prompt, build_user_prompt

logger = logging.getLogger(__name__)


class AICourrierService:
    """Generates letter text for a dossier."""

    def __init__(self, db: Session, credentials: ProviderCredentials,
                 orchestrator: Optional[AIOrchestrator] = None, base_delay: float = 1.0):
        self.db = db
        self.credentials = credentials
        self.orchestrator = orchestrator
        self.base_delay = base_delay

    def load_dossier(self, dossier_id: str) -> DossierDB:
        """
        Dossier with its client profile and documents.

        Raises:
            DossierNotFoundError: no dossier with this id
            MissingProfileError: the dossier has no client profile
        """
        dossier = self.db.query(DossierDB).options(
            joinedload(DossierDB.profile),
            joinedload(DossierDB.documents),
        ).filter(DossierDB.id == dossier_id).first()

        if dossier is None:
            logger.error(f"Dossier not found for ID: {dossier_id}")
            raise DossierNotFoundError(dossier_id)
        if dossier.profile is None:
            logger.error(f"Profile data missing for dossier: {dossier_id}")
            raise MissingProfileError(dossier_id)
        return dossier

    def generate(self, request: GenerationRequest, dossier: Optional[DossierDB] = None) -> GenerationResult:
        """Letter for the request. An already-loaded `dossier` skips the fetch."""
        logger.info(
            f"Generate AI courrier: dossier={request.dossier_id} type={request.type_courrier} "
            f"tone={request.tone.value} length={request.length.value} "
            f"preferred={request.preferred_provider.value}"
        )
        if dossier is None:
            dossier = self.load_dossier(request.dossier_id)
        context = build_generation_context(dossier)

        system_prompt = build_system_prompt(request.type_courrier, request.tone, request.length)
        user_prompt = build_user_prompt(context)

        orchestrator = self.orchestrator or AIOrchestrator.from_credentials(
            self.credentials, base_delay=self.base_delay
        )
        return orchestrator.generate(
            system_prompt,
            user_prompt,
            request.type_courrier,
            context,
            preferred=request.preferred_provider,
        )
