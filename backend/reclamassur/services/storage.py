"""
Object Storage

Local filesystem bucket for dossier documents. Objects are addressed by a
relative path inside the bucket; downloads go through short-lived signed URLs
carrying a JWT.
"""
import logging
from datetime import datetime, timedelta
from pathlib import Path, PurePosixPath
from typing import Iterable, List

from fastapi import Depends
from jose import JWTError, jwt

from ..config import Settings, get_settings
from ..errors import StorageError

logger = logging.getLogger(__name__)

DOCUMENTS_BUCKET = "documents"
SIGNED_URL_ALGORITHM = "HS256"


class LocalObjectStorage:
    """
    Bucket rooted at <root>/<bucket>.

    Provides methods for:
    - Uploading without overwrite
    - Downloading and removing objects
    - Issuing and checking signed download URLs
    """

    def __init__(self, root: str, secret_key: str, bucket: str = DOCUMENTS_BUCKET):
        self.bucket = bucket
        self.base_dir = Path(root) / bucket
        self.secret_key = secret_key
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized storage bucket '{bucket}' at {self.base_dir}")

    def _resolve(self, path: str) -> Path:
        """Absolute file path for an object path, refusing anything outside the bucket."""
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise StorageError(f"Chemin de stockage invalide: {path}", path=path)
        return self.base_dir.joinpath(*relative.parts)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """
        Store bytes at path. Existing objects are never overwritten.

        Returns:
            The object path
        """
        target = self._resolve(path)
        if target.exists():
            raise StorageError(f"L'objet existe déjà: {path}", path=path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Échec de l'envoi du fichier: {e}", path=path) from e
        logger.info(f"Stored {len(data)} bytes at {self.bucket}/{path} ({content_type})")
        return path

    def download(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise StorageError(f"Objet introuvable: {path}", path=path) from e
        except OSError as e:
            raise StorageError(f"Échec du téléchargement: {e}", path=path) from e

    def remove(self, paths: Iterable[str]) -> List[str]:
        """Delete objects. Missing objects are skipped; returns the removed paths."""
        removed = []
        for path in paths:
            target = self._resolve(path)
            try:
                target.unlink()
                removed.append(path)
            except FileNotFoundError:
                logger.warning(f"Storage object already absent: {self.bucket}/{path}")
            except OSError as e:
                raise StorageError(f"Échec de la suppression: {e}", path=path) from e
        return removed

    # =========================================================================
    # SIGNED URLS
    # =========================================================================

    def create_signed_token(self, path: str, expires_in: int) -> str:
        self._resolve(path)
        expire = datetime.utcnow() + timedelta(seconds=expires_in)
        return jwt.encode(
            {"bucket": self.bucket, "path": path, "exp": expire},
            self.secret_key,
            algorithm=SIGNED_URL_ALGORITHM,
        )

    def signed_url(self, path: str, expires_in: int = 3600) -> str:
        token = self.create_signed_token(path, expires_in)
        return f"/storage/{self.bucket}/object?token={token}"

    def verify_signed_token(self, token: str) -> str:
        """
        Object path carried by a valid, unexpired token.

        Raises:
            StorageError: invalid or expired token
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[SIGNED_URL_ALGORITHM])
        except JWTError as e:
            raise StorageError(f"Lien de téléchargement invalide ou expiré: {e}") from e
        if payload.get("bucket") != self.bucket or not payload.get("path"):
            raise StorageError("Lien de téléchargement invalide")
        return payload["path"]


def get_storage(settings: Settings = Depends(get_settings)) -> LocalObjectStorage:
    """FastAPI dependency returning the documents bucket."""
    return LocalObjectStorage(settings.storage_root, settings.jwt_secret_key)
