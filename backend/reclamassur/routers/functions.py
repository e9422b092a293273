"""
ReclamAssur - Functions Router
HTTP entry point for AI letter generation, kept compatible with the
`generate-ai-courrier` function contract used by the front end.

Every failure is answered with HTTP 500 and `{"success": false, "error": ...}`.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..auth import decode_token
from ..config import Settings, get_settings
from ..database import get_db
from ..errors import AccessDeniedError, ReclamAssurError
from ..models.db_models import TypeCourrier
from ..models.letters import GenerationRequest, Length, ProviderName, Tone
from ..services.ai_generation import AICourrierService, AIOrchestrator
from ..services.user_service import is_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["functions"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class GenerateCourrierRequest(BaseModel):
    """Body of the generation function (camelCase keys)."""
    model_config = ConfigDict(populate_by_name=True)

    dossier_id: str = Field(alias="dossierId", min_length=1)
    type_courrier: TypeCourrier = Field(alias="typeCourrier")
    tone: Tone = Tone.FERME
    length: Length = Length.MOYEN
    preferred_model: ProviderName = Field(default=ProviderName.AUTO, alias="preferredModel")

    def to_generation_request(self) -> GenerationRequest:
        return GenerationRequest(
            dossier_id=self.dossier_id,
            type_courrier=self.type_courrier.value,
            tone=self.tone,
            length=self.length,
            preferred_provider=self.preferred_model,
        )


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_orchestrator(settings: Settings = Depends(get_settings)) -> AIOrchestrator:
    """Orchestrator over the providers configured in the settings."""
    return AIOrchestrator.from_credentials(settings.providers, base_delay=settings.ai_backoff_base_delay)


def get_ai_service(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    orchestrator: AIOrchestrator = Depends(get_orchestrator)
) -> AICourrierService:
    return AICourrierService(db, settings.providers, orchestrator=orchestrator)


def _error_response(message: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"success": False, "error": message})


def _caller_id(authorization: str) -> Optional[str]:
    token = authorization.split(" ", 1)[1] if authorization.lower().startswith("bearer ") else authorization
    payload = decode_token(token.strip())
    return payload.get("sub") if payload else None


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.post("/generate-ai-courrier")
def generate_ai_courrier(
    request: GenerateCourrierRequest,
    authorization: Optional[str] = Header(None),
    service: AICourrierService = Depends(get_ai_service)
):
    """
    Generate a dispute letter for a dossier.

    Providers are tried in priority order with retries; when all of them fail
    the static letter for the requested type is returned with `fallback: true`.
    """
    if not authorization:
        logger.error("Generation request without Authorization header")
        return _error_response("En-tête d'autorisation manquant")

    try:
        caller_id = _caller_id(authorization)
        if caller_id is None:
            raise AccessDeniedError("Jeton d'authentification invalide")

        dossier = service.load_dossier(request.dossier_id)
        if dossier.client_id != caller_id and not is_admin(service.db, caller_id):
            # Other clients' dossiers answer like a missing one
            raise AccessDeniedError(f"Dossier non trouvé pour l'ID: {request.dossier_id}")

        result = service.generate(request.to_generation_request(), dossier=dossier)
    except ReclamAssurError as e:
        logger.error(f"Error in generate-ai-courrier: {e}")
        return _error_response(str(e))
    except Exception as e:
        logger.exception(f"Unexpected error in generate-ai-courrier for dossier {request.dossier_id}")
        return _error_response(str(e))

    logger.info(
        f"Courrier generated for dossier {request.dossier_id} "
        f"via {result.provider or 'fallback'} ({len(result.content)} chars)"
    )
    return {
        "success": True,
        "contenu_genere": result.content,
        "context": result.context.to_dict() if result.context else None,
        "provider": result.provider,
        "model": result.model,
        "fallback": result.used_fallback,
    }
