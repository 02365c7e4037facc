"""
XFound Backend — File Service Unit Tests
==========================================

What:  Listing image validation, storage layout, serving and deletion.
How:   Each test gets its own FileService rooted in a temporary directory.

Test Strategy:
    ✅ allowed / rejected extensions (case-insensitive)
    ✅ size limits and empty uploads
    ✅ date-organized UUID storage paths
    ✅ path traversal refused by resolve_public_path()
    ✅ delete_relative() tolerates missing files
    ❌ content sniffing needs libmagic (skipped where unavailable)
"""

from pathlib import Path
from unittest.mock import patch

import pytest

from app.config import settings
from app.exceptions import NotFoundError, ValidationError
from app.services.file_service import FileService


@pytest.fixture
def service(temp_storage):
    return FileService(storage_root=temp_storage)


class TestValidation:

    @pytest.mark.parametrize("name", ["photo.jpg", "photo.JPEG", "scan.png", "found.gif"])
    def test_allowed_extensions(self, service, name):
        assert service.validate_extension(name) == Path(name).suffix.lower()

    @pytest.mark.parametrize("name", ["doc.pdf", "malware.exe", "noextension", "archive.zip"])
    def test_rejected_extensions(self, service, name):
        with pytest.raises(ValidationError, match="not supported"):
            service.validate_extension(name)

    def test_size_within_limit(self, service):
        service.validate_size(1000, 1000)

    def test_size_over_limit(self, service):
        too_big = settings.max_file_size + 1
        with pytest.raises(ValidationError, match="too large"):
            service.validate_size(None, too_big)

    def test_reported_size_over_limit(self, service):
        with pytest.raises(ValidationError, match="maximum size"):
            service.validate_size(settings.max_file_size + 1, 10)

    def test_empty_file(self, service):
        with pytest.raises(ValidationError, match="empty"):
            service.validate_size(0, 0)

    def test_mime_sniffing_rejects_renamed_text(self, service):
        pytest.importorskip("magic")
        with pytest.raises(ValidationError, match="content type"):
            service.validate_mime_type(b"just some text, not an image", "fake.jpg")


class TestStorage:

    @pytest.mark.asyncio
    async def test_store_uses_date_directories_and_uuid_names(self, service, sample_image_bytes):
        with patch.object(service, "validate_mime_type", return_value="image/jpeg"):
            absolute, relative = await service.validate_and_store(
                filename="My Lost Wallet.JPG",
                content=sample_image_bytes,
                content_length=len(sample_image_bytes),
            )

        parts = relative.split("/")
        assert len(parts) == 4
        assert parts[0].isdigit() and len(parts[0]) == 4
        assert parts[3].endswith(".jpg")
        assert "Wallet" not in relative
        assert Path(absolute).read_bytes() == sample_image_bytes

    @pytest.mark.asyncio
    async def test_invalid_upload_writes_nothing(self, service, temp_storage):
        with pytest.raises(ValidationError):
            await service.validate_and_store(filename="notes.pdf", content=b"%PDF-1.4")
        assert list(Path(temp_storage).rglob("*.*")) == []

    def test_public_url(self):
        assert FileService.public_url("2026/10/19/a.png") == "/api/files/2026/10/19/a.png"


class TestServingAndDeletion:

    @pytest.mark.asyncio
    async def test_resolve_stored_file(self, service, sample_image_bytes):
        _, relative = await service.store_file(sample_image_bytes, ".jpg")
        assert service.resolve_public_path(relative).read_bytes() == sample_image_bytes

    def test_resolve_refuses_traversal(self, service):
        with pytest.raises(ValidationError, match="Invalid file path"):
            service.resolve_public_path("../../etc/passwd")

    def test_resolve_missing_file(self, service):
        with pytest.raises(NotFoundError):
            service.resolve_public_path("2026/01/01/missing.jpg")

    @pytest.mark.asyncio
    async def test_delete_relative_removes_file(self, service, sample_image_bytes):
        absolute, relative = await service.store_file(sample_image_bytes, ".png")
        await service.delete_relative(relative)
        assert not Path(absolute).exists()

    @pytest.mark.asyncio
    async def test_delete_relative_tolerates_missing_and_empty(self, service):
        await service.delete_relative("2026/01/01/gone.jpg")
        await service.delete_relative(None)
