"""
ReclamAssur - Courriers Router
Admin workflow for dispute letters: creation from a template or by AI
generation, validation, final edits, dispatch and deletion.
"""
from datetime import datetime
from typing import Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..models.db_models import ProfileDB, SourceCourrier, StatutCourrier, TypeCourrier
from ..models.letters import GenerationRequest, Length, ProviderName, Tone
from ..services.ai_generation import AICourrierService
from ..services.courrier_service import CourrierService
from .functions import get_ai_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/courriers", tags=["courriers"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class CourrierResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    dossier_id: str
    type_courrier: TypeCourrier
    contenu_genere: str
    contenu_final: Optional[str] = None
    statut: StatutCourrier
    source: SourceCourrier
    template_id: Optional[str] = None
    ai_provider: Optional[str] = None
    ai_model: Optional[str] = None
    admin_validateur: Optional[str] = None
    date_validation: Optional[datetime] = None
    date_envoi: Optional[datetime] = None
    numero_suivi: Optional[str] = None
    reference_laposte: Optional[str] = None
    cout_envoi: Optional[float] = None
    created_at: Optional[datetime] = None


class CreateFromTemplateRequest(BaseModel):
    dossier_id: str
    template_id: str
    type_courrier: TypeCourrier
    manual_values: Dict[str, str] = {}


class GenerateCourrierRequest(BaseModel):
    dossier_id: str
    type_courrier: TypeCourrier
    tone: Tone = Tone.FERME
    length: Length = Length.MOYEN
    preferred_provider: ProviderName = ProviderName.AUTO


class StatusUpdateRequest(BaseModel):
    statut: StatutCourrier
    numero_suivi: Optional[str] = None
    reference_laposte: Optional[str] = None
    cout_envoi: Optional[float] = None


class FinalContentRequest(BaseModel):
    contenu_final: str


# =============================================================================
# API ENDPOINTS
# =============================================================================

@router.get("", response_model=List[CourrierResponse])
async def list_courriers(
    statut: Optional[StatutCourrier] = Query(None),
    dossier_id: Optional[str] = Query(None),
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """List letters, newest first, optionally filtered by status or dossier."""
    return CourrierService(db).list_courriers(statut=statut, dossier_id=dossier_id)


@router.get("/{courrier_id}", response_model=CourrierResponse)
async def get_courrier(
    courrier_id: str,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return CourrierService(db).get(courrier_id)


@router.post("/from-template", response_model=CourrierResponse, status_code=status.HTTP_201_CREATED)
async def create_from_template(
    request: CreateFromTemplateRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Render a template against a dossier and store the result as a draft
    awaiting validation.
    """
    courrier = CourrierService(db).create_from_template(
        request.dossier_id, request.template_id, request.type_courrier, request.manual_values
    )
    logger.info(f"Admin {admin.id} created courrier {courrier.id} from template {request.template_id}")
    return courrier


@router.post("/generate-ai", response_model=CourrierResponse, status_code=status.HTTP_201_CREATED)
def generate_ai_courrier(
    request: GenerateCourrierRequest,
    admin: ProfileDB = Depends(require_admin),
    service: AICourrierService = Depends(get_ai_service)
):
    """
    Generate a letter with the AI providers (or the static fallback) and store
    it as a draft awaiting validation.
    """
    result = service.generate(GenerationRequest(
        dossier_id=request.dossier_id,
        type_courrier=request.type_courrier.value,
        tone=request.tone,
        length=request.length,
        preferred_provider=request.preferred_provider,
    ))
    courrier = CourrierService(service.db).create_from_generation(
        request.dossier_id, request.type_courrier, result
    )
    logger.info(
        f"Admin {admin.id} generated courrier {courrier.id} "
        f"({'fallback' if result.used_fallback else result.provider + '/' + result.model})"
    )
    return courrier


@router.put("/{courrier_id}/status", response_model=CourrierResponse)
async def update_status(
    courrier_id: str,
    request: StatusUpdateRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    """
    Move a letter through the validation workflow.
    Marking a letter 'envoye' records the dispatch date and tracking details.
    """
    return CourrierService(db).update_status(
        admin, courrier_id, request.statut,
        numero_suivi=request.numero_suivi,
        reference_laposte=request.reference_laposte,
        cout_envoi=request.cout_envoi,
    )


@router.put("/{courrier_id}/content", response_model=CourrierResponse)
async def edit_final_content(
    courrier_id: str,
    request: FinalContentRequest,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    return CourrierService(db).edit_final_content(admin, courrier_id, request.contenu_final)


@router.delete("/{courrier_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_courrier(
    courrier_id: str,
    admin: ProfileDB = Depends(require_admin),
    db: Session = Depends(get_db)
):
    CourrierService(db).delete(admin, courrier_id)
