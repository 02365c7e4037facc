"""
XFound Backend — Listing Image Route
======================================

GET /api/files/{path} serves images stored by FileService. Listing images
are immutable (every upload gets a fresh UUID name), so they are cached
aggressively.
"""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from app.schemas.common import ErrorResponse
from app.services.file_service import file_service

router = APIRouter(prefix="/api", tags=["Files"])


@router.get(
    "/files/{file_path:path}",
    response_class=FileResponse,
    responses={
        400: {"description": "Path escapes the storage root", "model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Serve a stored listing image",
)
async def get_file(file_path: str) -> FileResponse:
    full_path = file_service.resolve_public_path(file_path)
    return FileResponse(
        full_path,
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
