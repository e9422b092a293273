"""
ReclamAssur - Storage Router
Serves stored objects to holders of a valid signed URL.
"""
import mimetypes

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import Response

from ..errors import StorageError
from ..services.storage import LocalObjectStorage, get_storage

router = APIRouter(prefix="/storage", tags=["storage"])


@router.get("/{bucket}/object")
async def download_object(
    bucket: str,
    token: str = Query(...),
    storage: LocalObjectStorage = Depends(get_storage)
):
    """Return the object named by a signed token."""
    if bucket != storage.bucket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Bucket inconnu")

    try:
        path = storage.verify_signed_token(token)
    except StorageError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.context.message)

    data = storage.download(path)
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    filename = path.rsplit("/", 1)[-1]
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
