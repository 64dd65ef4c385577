import logging
import re
import uuid
from pathlib import Path
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse, JSONResponse
from sqlalchemy.orm import Session
from marginalia.core.config import get_settings
from marginalia.core.security import SessionDep
from marginalia.db.database import get_session
from marginalia.models.image import Image
from marginalia.schemas.image import UploadResponse

logger = logging.getLogger(__name__)

router = APIRouter()
media_router = APIRouter()

ALLOWED_TYPES = {
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
}
MAX_SIZE = 5 * 1024 * 1024  # 5 MB
MAX_NAME_LENGTH = 100

MIME_BY_EXTENSION = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

IMAGES_URL_PREFIX = "/uploads/images"

_UNSAFE_NAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")


def safe_filename(name: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("_", name)[:MAX_NAME_LENGTH]


def upload_root() -> Path:
    return Path(get_settings().upload_dir).resolve()


def resolve_upload_path(relative: str) -> Path | None:
    """Absolute path of an uploaded file, None if it would leave the upload root"""
    root = upload_root()
    candidate = (root / relative).resolve()
    if candidate == root or not candidate.is_relative_to(root):
        return None
    return candidate


@router.post("/upload", response_model=UploadResponse, status_code=status.HTTP_201_CREATED, summary="Upload an image")
def upload_image(
    current: SessionDep,
    file: UploadFile | None = File(default=None),
    session: Session = Depends(get_session),
):
    """Store an uploaded image and record it"""
    if file is None or not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided"
        )
    if file.content_type not in ALLOWED_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid file type. Allowed: JPEG, PNG, GIF, WebP"
        )

    data = file.file.read(MAX_SIZE + 1)
    if len(data) > MAX_SIZE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="File too large (max 5 MB)"
        )

    filename = f"{uuid.uuid4()}-{safe_filename(file.filename)}"
    root = upload_root()
    root.mkdir(parents=True, exist_ok=True)
    file_path = root / filename
    file_path.write_bytes(data)

    image = Image(
        filename=filename,
        path=str(file_path),
        mime_type=file.content_type,
        size_bytes=len(data),
    )
    session.add(image)
    session.commit()

    logger.info("Stored upload %s (%d bytes)", filename, len(data))
    return {"url": f"{IMAGES_URL_PREFIX}/{filename}", "id": image.id}


@media_router.get(IMAGES_URL_PREFIX + "/{file_path:path}", include_in_schema=False)
def serve_image(file_path: str):
    """Serve an uploaded image, never anything outside the upload directory"""
    resolved = resolve_upload_path(file_path)
    if resolved is None or not resolved.is_file():
        return JSONResponse({"detail": "Not found"}, status_code=status.HTTP_404_NOT_FOUND)

    return FileResponse(
        resolved,
        media_type=MIME_BY_EXTENSION.get(resolved.suffix.lower(), "application/octet-stream"),
        headers={"Cache-Control": "public, max-age=86400"},
    )
