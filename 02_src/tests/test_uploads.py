"""Tests for LocalBlobStore."""

import pytest

from teamchat.errors import ValidationError


class TestValidate:
    """Tests for upload validation."""

    def test_accepts_documents_and_images(self, blob_store):
        assert blob_store.validate("Report.PDF", 10) == ".pdf"
        assert blob_store.validate("photo.jpeg", 10) == ".jpeg"

    @pytest.mark.parametrize(
        "name,size",
        [("", 10), ("a.txt", 0), ("a.txt", 2048), ("script.sh", 10), ("noext", 10)],
    )
    def test_rejects(self, blob_store, name, size):
        with pytest.raises(ValidationError):
            blob_store.validate(name, size)

    def test_default_allow_list_matches_settings(self, tmp_path):
        from teamchat.chat import LocalBlobStore
        from teamchat.config import ChatSettings

        store = LocalBlobStore(tmp_path / "blobs")

        for ext in ChatSettings().allowed_upload_extensions:
            assert store.validate(f"file{ext}", 10) == ext


class TestPutResolve:
    """Tests for storing and serving blobs."""

    @pytest.mark.asyncio
    async def test_put_returns_attachment(self, blob_store):
        attachment = await blob_store.put("notes.txt", b"hello")

        assert attachment.url.startswith("/uploads/file-")
        assert attachment.url.endswith(".txt")
        assert attachment.name == "notes.txt"
        assert attachment.size == 5

    @pytest.mark.asyncio
    async def test_names_are_unique(self, blob_store):
        first = await blob_store.put("a.txt", b"1")
        second = await blob_store.put("a.txt", b"2")
        assert first.url != second.url

    @pytest.mark.asyncio
    async def test_resolve_stored_blob(self, blob_store):
        attachment = await blob_store.put("a.png", b"png")
        path = blob_store.resolve(attachment.url.removeprefix("/uploads/"))
        assert path.read_bytes() == b"png"

    def test_resolve_rejects_traversal(self, blob_store):
        assert blob_store.resolve("../secret.txt") is None
        assert blob_store.resolve("") is None
        assert blob_store.resolve("missing.txt") is None

    @pytest.mark.asyncio
    async def test_discard(self, blob_store):
        attachment = await blob_store.put("a.txt", b"bye")
        await blob_store.discard(attachment)
        assert blob_store.resolve(attachment.url.removeprefix("/uploads/")) is None
