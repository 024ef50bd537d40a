"""
portfolio/uploads.py -- Image upload validation and storage.

Two storage backends, selected by Settings.upload_storage:
  database -- bytes live in the project_images.data blob column.
  disk     -- bytes live in a file under Settings.upload_dir; the row keeps
              the generated file name in project_images.path.

Every file of a request is validated before anything is written, so a batch
with one bad file leaves no trace. Validation order per batch:
  1. count (0 -> no_file, > max_files -> too_many_files)
  2. per file: size, then extension, declared MIME type and sniffed content

Content sniffing uses filetype, which reads magic numbers from the first
bytes. A .png name with a PDF body is rejected even if the client declares
image/png.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import filetype

from core.errors import BadRequest, NotFound, PayloadTooLarge, UnsupportedMediaType, UpstreamFailure
from portfolio.models import ProjectImage
from portfolio.store import PortfolioStore

logger = logging.getLogger("ariacreative.uploads")

ALLOWED_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


@dataclass
class IncomingFile:
    """One file from a multipart request, already read into memory."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower()


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_file(file: IncomingFile, max_size: int) -> None:
    """Raise PayloadTooLarge or UnsupportedMediaType if the file is not acceptable."""
    if file.size > max_size:
        raise PayloadTooLarge(
            f"{file.filename} exceeds the maximum size of {max_size // (1024 * 1024)} MB.",
            details={"filename": file.filename, "size": file.size, "maxSize": max_size},
        )
    if file.extension not in ALLOWED_EXTENSIONS:
        raise UnsupportedMediaType(
            f"{file.filename}: only JPEG, PNG, GIF and WEBP images are allowed.",
            details={"filename": file.filename, "reason": "extension"},
        )
    if file.content_type.lower() not in ALLOWED_MIME_TYPES:
        raise UnsupportedMediaType(
            f"{file.filename}: only JPEG, PNG, GIF and WEBP images are allowed.",
            details={"filename": file.filename, "reason": "mimetype"},
        )
    kind = filetype.guess(file.data)
    if kind is None or kind.mime not in ALLOWED_MIME_TYPES:
        raise UnsupportedMediaType(
            f"{file.filename}: file content is not a supported image.",
            details={"filename": file.filename, "reason": "content"},
        )


def validate_batch(files: list[IncomingFile], max_files: int, max_size: int) -> None:
    """Validate a whole request. Raises on the first offending file."""
    if not files:
        raise BadRequest("No file uploaded.", code="no_file")
    if len(files) > max_files:
        raise BadRequest(
            f"Too many files: at most {max_files} per request.",
            code="too_many_files",
            details={"received": len(files), "maxFiles": max_files},
        )
    for file in files:
        validate_file(file, max_size)


def generate_stored_name(filename: str) -> str:
    """Return "<sanitized-stem>-<uuid4 hex><ext>" for a disk upload.

    The stem is reduced to [A-Za-z0-9_-] so the result is always a plain
    file name inside the upload directory.
    """
    original = Path(filename)
    stem = _UNSAFE_CHARS.sub("-", original.stem).strip("-")[:50] or "image"
    return f"{stem}-{uuid.uuid4().hex}{original.suffix.lower()}"


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


class ImageStorage:
    """Validate, persist, read and delete uploaded images.

    Usage:
        storage = ImageStorage(store, backend="disk", upload_dir=Path("uploads"))
        images = storage.save(files, project_id=None)
        data = storage.read(images[0])
    """

    def __init__(
        self,
        store: PortfolioStore,
        backend: str = "database",
        upload_dir: Optional[Path] = None,
        max_size: int = 10 * 1024 * 1024,
        max_files: int = 5,
    ) -> None:
        if backend not in ("database", "disk"):
            raise ValueError(f"Unknown upload storage backend: {backend!r}")
        if backend == "disk" and upload_dir is None:
            raise ValueError("upload_dir is required for the disk backend")
        self.store = store
        self.backend = backend
        self.upload_dir = upload_dir
        self.max_size = max_size
        self.max_files = max_files

    def save(self, files: list[IncomingFile], project_id: Optional[str] = None) -> list[ProjectImage]:
        """Validate every file, then store them all or none.

        Raises:
            BadRequest:            no file / too many files.
            PayloadTooLarge:       a file is over max_size.
            UnsupportedMediaType:  a file is not an allowed image.
            NotFound:              project_id given but no such project.
            UpstreamFailure:       a disk write failed.
        """
        validate_batch(files, self.max_files, self.max_size)
        if project_id is not None and self.store.get_project(project_id) is None:
            raise NotFound("Project not found.", code="project_not_found")

        images = [
            ProjectImage(
                filename=file.filename,
                mimetype=file.content_type.lower(),
                size=file.size,
                project_id=project_id,
            )
            for file in files
        ]

        written: list[Path] = []
        if self.backend == "disk":
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            for file, image in zip(files, images):
                stored_name = generate_stored_name(file.filename)
                target = self.upload_dir / stored_name
                try:
                    target.write_bytes(file.data)
                except OSError as exc:
                    logger.error("Disk write failed for %s: %s", stored_name, exc)
                    self._remove_files(written)
                    raise UpstreamFailure("Could not store the uploaded file.") from exc
                written.append(target)
                image.path = stored_name
        else:
            for file, image in zip(files, images):
                image.data = file.data

        try:
            ids = self.store.create_images(images)
        except Exception:
            self._remove_files(written)
            raise

        for image, image_id in zip(images, ids):
            image.id = image_id
            logger.info("Stored image %s (%s, %d bytes, backend=%s)", image_id, image.mimetype, image.size, self.backend)
        return images

    def get(self, image_id: str) -> ProjectImage:
        image = self.store.get_image(image_id)
        if image is None:
            raise NotFound("Image not found.", code="image_not_found")
        return image

    def read(self, image: ProjectImage) -> bytes:
        """Return the stored bytes of an image, from the blob or from disk."""
        if image.data is not None:
            return image.data
        if image.path and self.upload_dir is not None:
            target = self.upload_dir / image.path
            if target.is_file():
                return target.read_bytes()
        logger.warning("Image %s has no readable content", image.id)
        raise NotFound("Image content not found.", code="image_not_found")

    def delete(self, image_id: str) -> ProjectImage:
        """Delete the image row and its file. Raises NotFound if absent."""
        image = self.get(image_id)
        self.store.delete_image(image_id)
        if image.path:
            self.remove_stored_files([image])
        return image

    def remove_stored_files(self, images: list[ProjectImage]) -> None:
        """Unlink the disk files of already-deleted image rows."""
        if self.upload_dir is None:
            return
        self._remove_files([self.upload_dir / image.path for image in images if image.path])

    @staticmethod
    def _remove_files(paths: list[Path]) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Could not remove %s: %s", path, exc)
