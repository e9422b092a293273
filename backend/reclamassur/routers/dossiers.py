"""
ReclamAssur - Dossiers Router
Client side of the platform: claim submission, own dossiers and their documents.
All endpoints require authentication.
"""
from datetime import date, datetime
from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..config import Settings, get_settings
from ..database import get_db
from ..models.db_models import ProfileDB, StatutDossier, TypeDocument
from ..models.schemas import ClaimSubmission, InsurerAddress
from ..services.document_service import DocumentService, IncomingFile
from ..services.dossier_service import DossierService
from ..services.storage import LocalObjectStorage, get_storage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/dossiers", tags=["dossiers"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================

class DossierResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_id: str
    type_sinistre: str
    date_sinistre: date
    refus_date: date
    montant_refuse: float
    police_number: str
    compagnie_assurance: str
    motif_refus: Optional[str] = None
    description: Optional[str] = None
    adresse_assureur: Optional[dict] = None
    statut: StatutDossier
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class DossierUpdateRequest(BaseModel):
    """Fields a client may change on their own dossier."""
    type_sinistre: Optional[str] = None
    date_sinistre: Optional[date] = None
    refus_date: Optional[date] = None
    montant_refuse: Optional[float] = None
    police_number: Optional[str] = None
    compagnie_assurance: Optional[str] = None
    motif_refus: Optional[str] = None
    description: Optional[str] = None
    adresse_assureur: Optional[InsurerAddress] = None


class DocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    dossier_id: str
    uploaded_by: str
    nom_fichier: str
    type_document: TypeDocument
    mime_type: Optional[str] = None
    taille_fichier: Optional[int] = None
    url_stockage: str
    created_at: Optional[datetime] = None


class FailedUpload(BaseModel):
    filename: str
    error: str


class BatchUploadResponse(BaseModel):
    uploaded: List[DocumentResponse]
    failed: List[FailedUpload]


class SignedUrlResponse(BaseModel):
    url: str
    expires_in: int


def get_document_service(
    db: Session = Depends(get_db),
    storage: LocalObjectStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> DocumentService:
    return DocumentService(db, storage, settings)


# =============================================================================
# DOSSIER ENDPOINTS
# =============================================================================

@router.post("", response_model=DossierResponse, status_code=status.HTTP_201_CREATED)
async def submit_claim(
    submission: ClaimSubmission,
    current_user: ProfileDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Submit the claim form. Creates a dossier in status 'nouveau'.
    """
    dossier = DossierService(db).create_from_claim(current_user, submission)
    return dossier


@router.get("", response_model=List[DossierResponse])
async def list_my_dossiers(
    current_user: ProfileDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the caller's dossiers, newest first."""
    return DossierService(db).list_for_client(current_user)


@router.get("/{dossier_id}", response_model=DossierResponse)
async def get_dossier(
    dossier_id: str,
    current_user: ProfileDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return DossierService(db).get_dossier(current_user, dossier_id)


@router.put("/{dossier_id}", response_model=DossierResponse)
async def update_dossier(
    dossier_id: str,
    request: DossierUpdateRequest,
    current_user: ProfileDB = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """
    Update the caller's own dossier. Status changes are reserved to admins.
    """
    updates = request.model_dump(exclude_unset=True)
    return DossierService(db).update_by_client(current_user, dossier_id, updates)


# =============================================================================
# DOCUMENT ENDPOINTS
# =============================================================================

@router.post("/{dossier_id}/documents", response_model=BatchUploadResponse)
async def upload_documents(
    dossier_id: str,
    files: List[UploadFile] = File(...),
    type_document: TypeDocument = Form(TypeDocument.AUTRE),
    current_user: ProfileDB = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service)
):
    """
    Upload one or more files to a dossier.

    Files are stored one at a time. A file that fails after its retries is
    reported in `failed` and the remaining files are still processed.
    """
    incoming = []
    for upload in files:
        content = await upload.read()
        incoming.append(IncomingFile(
            filename=upload.filename or "document",
            content=content,
            content_type=upload.content_type or "application/octet-stream",
        ))

    result = service.upload_batch(current_user, dossier_id, incoming, type_document)
    return BatchUploadResponse(
        uploaded=[DocumentResponse.model_validate(d) for d in result.uploaded],
        failed=[FailedUpload(**f) for f in result.failed],
    )


@router.get("/{dossier_id}/documents", response_model=List[DocumentResponse])
async def list_documents(
    dossier_id: str,
    current_user: ProfileDB = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service)
):
    return service.list_documents(current_user, dossier_id)


@router.get("/documents/{document_id}/download-url", response_model=SignedUrlResponse)
async def get_download_url(
    document_id: str,
    request: Request,
    current_user: ProfileDB = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service)
):
    """
    Signed, time-limited URL for a document. The access is logged.
    """
    url = service.create_download_url(
        current_user,
        document_id,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )
    return SignedUrlResponse(url=url, expires_in=service.settings.signed_url_expires_in)


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: str,
    current_user: ProfileDB = Depends(get_current_user),
    service: DocumentService = Depends(get_document_service)
):
    service.delete_document(current_user, document_id)
