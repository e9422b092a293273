"""
Document Service

Uploads dossier documents in two phases (storage object, then metadata row)
and undoes the storage write when the row cannot be committed. Batches are
processed one file at a time; a failed file does not stop the batch.
"""
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, TypeVar
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings
from ..errors import AccessDeniedError, NotFoundError, ReclamAssurError, StorageError, ValidationError
from ..models.db_models import DocumentDB, DossierDB, ProfileDB, TypeDocument
from .audit_service import log_document_activity
from .storage import LocalObjectStorage
from .user_service import is_admin

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
}
UPLOAD_RETRIES = 2


@dataclass
class IncomingFile:
    """A file received from the client."""
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class BatchUploadResult:
    uploaded: List[DocumentDB] = field(default_factory=list)
    failed: List[dict] = field(default_factory=list)  # {"filename", "error"}


def build_storage_path(user_id: str, dossier_id: str, filename: str, timestamp_ms: Optional[int] = None) -> str:
    """'{user}/{dossier}/{stem}_{timestamp}{ext}'"""
    timestamp_ms = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    stem, ext = os.path.splitext(os.path.basename(filename))
    return f"{user_id}/{dossier_id}/{stem}_{timestamp_ms}{ext}"


def commit_stored_object(
    storage: LocalObjectStorage,
    path: str,
    data: bytes,
    content_type: str,
    persist: Callable[[], T],
) -> T:
    """
    Two-phase write: store the object, then run `persist` (the metadata commit).
    If `persist` raises, the stored object is removed and the error re-raised.
    """
    storage.upload(path, data, content_type)
    try:
        return persist()
    except Exception:
        logger.warning(f"Metadata commit failed, removing stored object {path}")
        storage.remove([path])
        raise


class DocumentService:
    """Upload, list, download and delete dossier documents."""

    def __init__(self, db: Session, storage: LocalObjectStorage, settings: Settings,
                 sleep: Callable[[float], None] = time.sleep):
        self.db = db
        self.storage = storage
        self.settings = settings
        self.sleep = sleep

    # =========================================================================
    # ACCESS
    # =========================================================================

    def get_accessible_dossier(self, user: ProfileDB, dossier_id: str) -> DossierDB:
        dossier = self.db.query(DossierDB).filter(DossierDB.id == dossier_id).first()
        if not dossier:
            raise NotFoundError("Dossier", dossier_id)
        if dossier.client_id != user.id and not is_admin(self.db, user.id):
            raise AccessDeniedError("Accès au dossier refusé")
        return dossier

    def get_accessible_document(self, user: ProfileDB, document_id: str) -> DocumentDB:
        document = self.db.query(DocumentDB).filter(DocumentDB.id == document_id).first()
        if not document:
            raise NotFoundError("Document", document_id)
        self.get_accessible_dossier(user, document.dossier_id)
        return document

    # =========================================================================
    # UPLOAD
    # =========================================================================

    def validate_file(self, incoming: IncomingFile) -> None:
        if incoming.size == 0:
            raise ValidationError(f"Fichier vide: {incoming.filename}")
        if incoming.size > self.settings.max_upload_bytes:
            raise ValidationError(
                f"Fichier trop volumineux: {incoming.filename}",
                details={"size": incoming.size, "max": self.settings.max_upload_bytes},
            )
        if incoming.content_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(f"Type de fichier non autorisé: {incoming.content_type}")

    def upload_file(self, user: ProfileDB, dossier: DossierDB, incoming: IncomingFile,
                    type_document: TypeDocument) -> DocumentDB:
        """Store one file and commit its metadata row."""
        path = build_storage_path(user.id, dossier.id, incoming.filename)

        def persist() -> DocumentDB:
            document = DocumentDB(
                id=str(uuid4()),
                dossier_id=dossier.id,
                uploaded_by=user.id,
                nom_fichier=incoming.filename,
                type_document=type_document,
                mime_type=incoming.content_type,
                taille_fichier=incoming.size,
                url_stockage=path,
            )
            self.db.add(document)
            log_document_activity(self.db, user.id, "upload", dossier_id=dossier.id, document_id=document.id)
            try:
                self.db.commit()
            except SQLAlchemyError:
                self.db.rollback()
                raise
            self.db.refresh(document)
            return document

        return commit_stored_object(self.storage, path, incoming.content, incoming.content_type, persist)

    def upload_with_retry(self, user: ProfileDB, dossier: DossierDB, incoming: IncomingFile,
                          type_document: TypeDocument) -> DocumentDB:
        """Upload one file, retrying with a linearly growing pause."""
        for attempt in range(UPLOAD_RETRIES + 1):
            try:
                return self.upload_file(user, dossier, incoming, type_document)
            except (StorageError, SQLAlchemyError) as e:
                logger.warning(f"Upload attempt {attempt + 1}/{UPLOAD_RETRIES + 1} failed for {incoming.filename}: {e}")
                if attempt == UPLOAD_RETRIES:
                    raise
                self.sleep((attempt + 1) * self.settings.upload_retry_delay)

    def upload_batch(self, user: ProfileDB, dossier_id: str, files: List[IncomingFile],
                     type_document: TypeDocument = TypeDocument.AUTRE) -> BatchUploadResult:
        """
        Upload files sequentially with a short pause between them.
        Per-file failures are recorded in the result and the batch continues.
        """
        dossier = self.get_accessible_dossier(user, dossier_id)
        result = BatchUploadResult()

        for index, incoming in enumerate(files):
            try:
                self.validate_file(incoming)
                result.uploaded.append(self.upload_with_retry(user, dossier, incoming, type_document))
            except (ReclamAssurError, SQLAlchemyError) as e:
                logger.error(f"Upload failed for {incoming.filename}: {e}")
                result.failed.append({"filename": incoming.filename, "error": str(e)})

            if index < len(files) - 1:
                self.sleep(self.settings.upload_pause_seconds)

        logger.info(
            f"Batch upload for dossier {dossier_id}: {len(result.uploaded)} uploaded, {len(result.failed)} failed"
        )
        return result

    # =========================================================================
    # READ / DELETE
    # =========================================================================

    def list_documents(self, user: ProfileDB, dossier_id: str) -> List[DocumentDB]:
        self.get_accessible_dossier(user, dossier_id)
        return self.db.query(DocumentDB).filter(
            DocumentDB.dossier_id == dossier_id
        ).order_by(DocumentDB.created_at.desc()).all()

    def create_download_url(self, user: ProfileDB, document_id: str,
                            ip_address: Optional[str] = None, user_agent: Optional[str] = None) -> str:
        """Signed URL for a document. The access is written to activity_logs."""
        document = self.get_accessible_document(user, document_id)
        url = self.storage.signed_url(document.url_stockage, self.settings.signed_url_expires_in)
        log_document_activity(
            self.db, user.id, "download",
            dossier_id=document.dossier_id, document_id=document.id,
            ip_address=ip_address, user_agent=user_agent,
        )
        self.db.commit()
        return url

    def delete_document(self, user: ProfileDB, document_id: str) -> None:
        """Delete the row, then the stored object."""
        document = self.get_accessible_document(user, document_id)
        path = document.url_stockage
        log_document_activity(
            self.db, user.id, "delete", dossier_id=document.dossier_id, document_id=document.id
        )
        self.db.delete(document)
        self.db.commit()
        self.storage.remove([path])
        logger.info(f"Document {document_id} deleted by {user.id}")
