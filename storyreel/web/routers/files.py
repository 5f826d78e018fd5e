"""Stored media router."""

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from ...storage import content_type
from ..dependencies import StorageDep

router = APIRouter(prefix="/uploads", tags=["files"])


@router.get("/{project_id}/{filename}")
def get_file(project_id: str, filename: str, storage: StorageDep) -> FileResponse:
    """Serve a stored file with its content type."""
    path = storage.path_for(project_id, filename)
    if path is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File not found: {project_id}/{filename}",
        )
    return FileResponse(path, media_type=content_type(filename))
