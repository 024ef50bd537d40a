"""
api/routes/v1/upload.py -- Image upload, retrieval and deletion.

Routes:
  POST   /api/v1/upload/image        -- admin: one file, multipart field "image"
  POST   /api/v1/upload/images       -- admin: 1..MAX_FILES files, field "images"
  GET    /api/v1/upload/image/{id}   -- public: raw image bytes
  DELETE /api/v1/upload/image/{id}   -- admin: delete row and file
  GET    /api/v1/upload/images       -- admin: metadata list, newest first
  GET    /api/v1/upload/stats        -- admin: count and size totals

Both POST routes accept an optional "project_id" form field that attaches the
images to an existing project.

Each file is read at most MAX_FILE_SIZE + 1 bytes into memory; the extra byte
is enough for validation to tell "exactly at the limit" from "over it".
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from api.audit import audit
from api.models import Envelope, ImageResponse, ImagesUploadResponse, MessageResponse, UploadStatsResponse
from auth.dependencies import require_admin
from auth.models import SessionClaims
from portfolio.store import PortfolioStore
from portfolio.uploads import ImageStorage, IncomingFile

# Auth policy:
# - GET /upload/image/{id}:  public -- images are embedded in the public site
# - all other routes:         requires admin (require_admin)
router = APIRouter()

_BYTES_PER_MB = 1024 * 1024


def _get_storage(request: Request) -> ImageStorage:
    return request.app.state.image_storage


async def _read_uploads(uploads: list[UploadFile], max_size: int) -> list[IncomingFile]:
    files: list[IncomingFile] = []
    for upload in uploads:
        # Browsers send an empty part with no filename for an untouched file input.
        if not upload.filename:
            continue
        data = await upload.read(max_size + 1)
        files.append(
            IncomingFile(
                filename=upload.filename,
                content_type=upload.content_type or "application/octet-stream",
                data=data,
            )
        )
    return files


@router.post("/upload/image", response_model=ImageResponse, status_code=201)
async def upload_image(
    request: Request,
    image: Optional[UploadFile] = File(None),
    project_id: Optional[str] = Form(None),
    admin: SessionClaims = Depends(require_admin),
) -> ImageResponse:
    """Store a single image and return its reference URL."""
    storage = _get_storage(request)
    files = await _read_uploads([image] if image is not None else [], storage.max_size)
    saved = await run_in_threadpool(storage.save, files, project_id or None)
    audit(admin, "upload", "image", saved[0].id, project=project_id)
    return ImageResponse.from_domain(saved[0])


@router.post("/upload/images", response_model=ImagesUploadResponse, status_code=201)
async def upload_images(
    request: Request,
    images: Optional[list[UploadFile]] = File(None),
    project_id: Optional[str] = Form(None),
    admin: SessionClaims = Depends(require_admin),
) -> ImagesUploadResponse:
    """Store up to MAX_FILES images atomically: all are stored or none is."""
    storage = _get_storage(request)
    files = await _read_uploads(images or [], storage.max_size)
    saved = await run_in_threadpool(storage.save, files, project_id or None)
    audit(admin, "upload", "image", ",".join(i.id for i in saved), project=project_id)
    return ImagesUploadResponse(count=len(saved), images=[ImageResponse.from_domain(i) for i in saved])


@router.get("/upload/image/{image_id}")
def get_image(request: Request, image_id: str) -> Response:
    """Return the stored bytes with the stored MIME type."""
    storage = _get_storage(request)
    image = storage.get(image_id)
    return Response(
        content=storage.read(image),
        media_type=image.mimetype,
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.delete("/upload/image/{image_id}", response_model=MessageResponse)
def delete_image(
    request: Request,
    image_id: str,
    admin: SessionClaims = Depends(require_admin),
) -> MessageResponse:
    _get_storage(request).delete(image_id)
    audit(admin, "delete", "image", image_id)
    return MessageResponse(message="Image deleted.")


@router.get("/upload/images", response_model=Envelope[list[ImageResponse]])
def list_images(request: Request, admin: SessionClaims = Depends(require_admin)) -> Envelope[list[ImageResponse]]:
    store: PortfolioStore = request.app.state.portfolio
    return Envelope[list[ImageResponse]](data=[ImageResponse.from_domain(i) for i in store.list_images()])


@router.get("/upload/stats", response_model=Envelope[UploadStatsResponse])
def upload_stats(request: Request, admin: SessionClaims = Depends(require_admin)) -> Envelope[UploadStatsResponse]:
    store: PortfolioStore = request.app.state.portfolio
    count, total = store.image_stats()
    average = total // count if count else 0
    return Envelope[UploadStatsResponse](
        data=UploadStatsResponse(
            total_files=count,
            total_size=total,
            total_size_mb=round(total / _BYTES_PER_MB, 2),
            average_size=average,
            average_size_mb=round(average / _BYTES_PER_MB, 2),
        )
    )
