"""Tests for rename, delete and download resolution."""

import asyncio
import uuid

import pytest

from docvault.errors import BlobMissing, InvalidInput, NotFound
from docvault.services.lifecycle import DocumentLifecycle
from docvault.services.object_store import LocalObjectStore
from docvault.services.query import DocumentFilters

from tests.fakes import PDF


@pytest.mark.asyncio
class TestUpdate:
    async def test_rename_changes_only_title(self, pipeline, lifecycle, query):
        original = await pipeline.upload(b"data", PDF, "a.pdf", description="keep me", doc_type="work")

        await lifecycle.update(original.id, "New name")
        fetched = await query.get(original.id)

        assert fetched.title == "New name"
        for field in ("original_name", "storage_reference", "file_url", "mime_type", "size",
                      "upload_date", "description", "doc_type"):
            assert getattr(fetched, field) == getattr(original, field)

    async def test_rename_does_not_touch_blob(self, pipeline, lifecycle, object_store):
        doc = await pipeline.upload(b"data", PDF, "a.pdf")
        await lifecycle.update(doc.id, "Renamed")
        assert object_store.blobs[doc.storage_reference] == b"data"
        assert object_store.deleted == []

    async def test_same_title_is_success(self, pipeline, lifecycle):
        doc = await pipeline.upload(b"data", PDF, "a.pdf", title="Same")
        updated = await lifecycle.update(doc.id, "Same")
        assert updated.title == "Same"

    async def test_missing_id(self, lifecycle, query):
        with pytest.raises(NotFound):
            await lifecycle.update(uuid.uuid4(), "Whatever")
        assert await query.list(DocumentFilters.from_params()) == []

    @pytest.mark.parametrize("title", ["", "   ", None])
    async def test_blank_title_rejected(self, pipeline, lifecycle, query, title):
        doc = await pipeline.upload(b"data", PDF, "a.pdf", title="Before")
        with pytest.raises(InvalidInput):
            await lifecycle.update(doc.id, title)
        assert (await query.get(doc.id)).title == "Before"

    async def test_description_and_type(self, pipeline, lifecycle):
        doc = await pipeline.upload(b"data", PDF, "a.pdf")
        updated = await lifecycle.update(doc.id, "T", description=" notes ", doc_type="work")
        assert updated.description == "notes"
        assert updated.doc_type == "work"

    async def test_unknown_type_rejected(self, pipeline, lifecycle):
        doc = await pipeline.upload(b"data", PDF, "a.pdf")
        with pytest.raises(InvalidInput):
            await lifecycle.update(doc.id, "T", doc_type="invoice")

    async def test_rename_is_audited(self, pipeline, lifecycle, audit_trail):
        doc = await pipeline.upload(b"data", PDF, "a.pdf")
        await lifecycle.update(doc.id, "Renamed")
        entries = await audit_trail.list(document_id=doc.id)
        assert entries[0].action == "RENAME"
        assert entries[0].details == "Renamed to: Renamed"


@pytest.mark.asyncio
class TestDelete:
    async def test_delete_removes_record_and_blob(self, pipeline, lifecycle, query, object_store):
        doc = await pipeline.upload(b"data", PDF, "a.pdf")

        await lifecycle.delete(doc.id)

        assert await query.list(DocumentFilters.from_params()) == []
        assert doc.storage_reference not in object_store.blobs
        with pytest.raises(NotFound):
            await lifecycle.delete(doc.id)

    async def test_missing_id(self, lifecycle):
        with pytest.raises(NotFound):
            await lifecycle.delete(uuid.uuid4())

    async def test_blob_failure_still_removes_record(self, pipeline, lifecycle, query, object_store):
        doc = await pipeline.upload(b"data", PDF, "a.pdf")
        object_store.fail_delete = True

        await lifecycle.delete(doc.id)

        with pytest.raises(NotFound):
            await query.get(doc.id)

    async def test_concurrent_delete_single_winner(self, pipeline, lifecycle):
        doc = await pipeline.upload(b"data", PDF, "a.pdf")

        results = await asyncio.gather(
            lifecycle.delete(doc.id), lifecycle.delete(doc.id), return_exceptions=True
        )

        assert results.count(None) == 1
        assert sum(isinstance(r, NotFound) for r in results) == 1

    async def test_delete_is_audited(self, pipeline, lifecycle, audit_trail):
        doc = await pipeline.upload(b"data", PDF, "gone.pdf")
        await lifecycle.delete(doc.id)
        entries = await audit_trail.list(document_id=doc.id)
        assert [e.action for e in entries] == ["DELETE", "UPLOAD"]
        assert entries[0].details == "Deleted file: gone.pdf"


@pytest.mark.asyncio
class TestResolveDownload:
    async def test_remote_store_has_no_path(self, pipeline, lifecycle):
        doc = await pipeline.upload(b"data", PDF, "a.pdf")
        target = await lifecycle.resolve_download(doc.id)
        assert target.path is None
        assert target.document.file_url == doc.file_url

    async def test_missing_id(self, lifecycle):
        with pytest.raises(NotFound):
            await lifecycle.resolve_download(uuid.uuid4())

    async def test_local_store_path_and_missing_blob(self, store, audit_trail, settings, pipeline):
        local = LocalObjectStore(settings.FILE_STORAGE_PATH)
        pipeline.object_store = local
        local_lifecycle = DocumentLifecycle(store, local, audit_trail, settings.DOC_TYPES)

        doc = await pipeline.upload(b"%PDF local", PDF, "local.pdf")
        target = await local_lifecycle.resolve_download(doc.id)
        assert target.path.read_bytes() == b"%PDF local"

        target.path.unlink()
        with pytest.raises(BlobMissing):
            await local_lifecycle.resolve_download(doc.id)
