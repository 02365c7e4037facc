"""
XFound Backend — Listing Image Storage Service
================================================

What:  Validates, stores, serves and deletes the images attached to listings.
Why:   Every item needs a photo; uploads are the one place untrusted bytes
       reach the disk, so all checks live here.
How:   Extension → size → magic-byte MIME check, then an async write to
       STORAGE_ROOT/YYYY/MM/DD/<uuid>.<ext>.
Who:   ItemService (create/update/delete) and the /api/files route.

Security Model:
    1. Extension check:   rejects obviously wrong files before reading bytes
    2. Size check:        bounded by MAX_FILE_SIZE (default 5MB)
    3. MIME type check:   libmagic inspects the header bytes (renamed files fail)
    4. UUID filename:     no user input ever reaches the path
    5. resolve_public_path(): refuses paths that escape the storage root
"""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Tuple

import aiofiles

from app.config import settings
from app.exceptions import FileStorageError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

# MIME type → canonical extension
ALLOWED_MIME_TYPES = {
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/gif": ".gif",
}

ALLOWED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif"}

# URL prefix under which stored images are served
PUBLIC_PREFIX = "/api/files/"


class FileService:
    """
    Manages the lifecycle of listing images.

    Directory Structure:
        storage/
        └── 2024/
            └── 01/
                └── 15/
                    ├── a1b2c3d4-5678.jpg
                    └── e5f6g7h8-9012.png
    """

    def __init__(self, storage_root: Optional[str] = None):
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    # ── Validation ────────────────────────────────────────────────────────

    def validate_extension(self, filename: str) -> str:
        """Returns the normalized extension (lowercase with dot)."""
        ext = Path(filename).suffix.lower()
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                message=(
                    f"File type '{ext}' is not supported. "
                    "Only images are allowed (jpeg, jpg, png, gif)"
                ),
                field="image",
                context={"extension": ext, "allowed": sorted(ALLOWED_EXTENSIONS)},
            )
        return ext

    def validate_size(self, content_length: Optional[int], actual_size: int) -> None:
        """
        Checks the Content-Length hint first, then the real byte count
        (some clients send a wrong header).
        """
        max_mb = settings.max_file_size / (1024 * 1024)

        if actual_size == 0:
            raise ValidationError(message="Image file is empty", field="image")

        if content_length and content_length > settings.max_file_size:
            raise ValidationError(
                message=f"Image exceeds the maximum size of {max_mb:.0f}MB.",
                field="image",
                context={"max_size_mb": max_mb, "reported_size": content_length},
            )

        if actual_size > settings.max_file_size:
            raise ValidationError(
                message=f"Image is too large ({actual_size / (1024 * 1024):.1f}MB, max {max_mb:.0f}MB).",
                field="image",
                context={"max_size_mb": max_mb, "actual_size": actual_size},
            )

    def validate_mime_type(self, file_content: bytes, filename: str) -> str:
        """
        Returns the detected MIME type.

        python-magic needs the libmagic system library; where it is missing
        (slim CI images) the extension is trusted instead and a warning logged.
        """
        try:
            import magic
            mime_type = magic.from_buffer(file_content, mime=True)
        except ImportError:
            logger.warning(
                "python-magic not available — falling back to extension-based type detection. "
                "Install libmagic for production security."
            )
            ext = Path(filename).suffix.lower()
            mime_map = {
                ".png": "image/png",
                ".jpg": "image/jpeg",
                ".jpeg": "image/jpeg",
                ".gif": "image/gif",
            }
            mime_type = mime_map.get(ext, "application/octet-stream")
        except Exception as e:
            logger.error("MIME type detection failed: %s", str(e))
            raise FileStorageError(
                message="Could not verify file type. Please try again.",
                context={"error": str(e)},
            )

        if mime_type not in ALLOWED_MIME_TYPES:
            raise ValidationError(
                message=(
                    f"File content type '{mime_type}' is not supported. "
                    "Only images are allowed (jpeg, jpg, png, gif)"
                ),
                field="image",
                context={"detected_mime": mime_type},
            )
        return mime_type

    # ── Storage ───────────────────────────────────────────────────────────

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_path = f"{date_dir}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """Write validated bytes; returns (absolute_path, relative_path)."""
        absolute_path, relative_path = self._generate_storage_path(extension)

        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)

            logger.info("Image stored: %s (%d bytes)", relative_path, len(content))
            return str(absolute_path), relative_path

        except OSError as e:
            logger.error("Failed to store image at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded image. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

    async def validate_and_store(
        self,
        filename: str,
        content: bytes,
        content_length: Optional[int] = None,
    ) -> Tuple[str, str]:
        """
        Complete pipeline, cheapest check first.

        Returns:
            (absolute_path, relative_path) of the stored image.
        """
        ext = self.validate_extension(filename)
        self.validate_size(content_length, len(content))
        self.validate_mime_type(content, filename)
        return await self.store_file(content, ext)

    async def cleanup_file(self, file_path: str) -> None:
        """
        Best-effort delete of an absolute path.

        Missing files are fine; other failures are logged, not raised, since
        a leftover image never breaks a request.
        """
        try:
            path = Path(file_path)
            if path.exists():
                path.unlink()
                logger.info("Removed image: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to remove image %s: %s", file_path, str(e))

    async def delete_relative(self, relative_path: Optional[str]) -> None:
        """Delete a stored image by the relative path kept on the item."""
        if not relative_path:
            return
        try:
            target = self.resolve_public_path(relative_path)
        except (ValidationError, NotFoundError):
            logger.debug("Nothing to delete for %s", relative_path)
            return
        await self.cleanup_file(str(target))

    # ── Serving ───────────────────────────────────────────────────────────

    @staticmethod
    def public_url(relative_path: str) -> str:
        return f"{PUBLIC_PREFIX}{relative_path}"

    def resolve_public_path(self, relative_path: str) -> Path:
        """
        Map a URL path segment to a file inside the storage root.

        Raises:
            ValidationError: the path escapes the storage root (../ tricks)
            NotFoundError:   no such file
        """
        full_path = (self.storage_root / relative_path).resolve()
        if not full_path.is_relative_to(self.storage_root):
            raise ValidationError(message="Invalid file path")
        if not full_path.is_file():
            raise NotFoundError(resource="file", resource_id=relative_path)
        return full_path


# ── Singleton Instance ────────────────────────────────────────────────────
file_service = FileService()
