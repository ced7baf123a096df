"""Tests for the index, vectorize and reduce jobs."""

import asyncio
from datetime import datetime
from unittest.mock import AsyncMock, Mock

import pytest

from indexer.db.models import VersionRepository
from services.indexing import IndexingService as indexing_module
from services.indexing.IndexingService import ALLOWED_TYPES, IndexingService
from shared.clients.storage.models.HashedFile import HashedFile
from shared.models.document import DocumentOut

HASH_A = "0cc175b9c0f1b6a831c399e269772661"
HASH_B = "92eb5ffee6ae2fec3ad71c777531578f"


class FakeBackend:
    """In-memory stand-in for the API server's document endpoints."""

    def __init__(self):
        self.documents: dict[str, DocumentOut] = {}
        # (chunk index, chunk text) per document
        self.embeddings: dict[str, list[tuple[int | None, str]]] = {}
        self.deleted_embeddings: list[tuple[str, int | None]] = []

    def add(self, id: str, file_path: str, file_md5_hash: str | None = None) -> DocumentOut:
        document = DocumentOut(
            id=id,
            workspace_id="eng",
            file_path=file_path,
            file_remote="",
            file_md5_hash=file_md5_hash,
            created_at=datetime(2024, 1, 1),
        )
        self.documents[id] = document
        self.embeddings[id] = []
        return document

    async def do_get_document(self, file_path=None, workspace_id=None, file_hash=None, id=None):
        return next(
            (d.id for d in self.documents.values() if d.file_path == file_path and d.workspace_id == workspace_id),
            None,
        )

    async def do_create_document(self, workspace_id, file_remote, file_path):
        existing = await self.do_get_document(file_path=file_path, workspace_id=workspace_id)
        if existing is not None:
            return existing, False
        return self.add(f"d{len(self.documents) + 1}", file_path).id, True

    async def do_update_document(self, id, file_md5_hash):
        self.documents[id] = self.documents[id].model_copy(update={"file_md5_hash": file_md5_hash})

    async def do_find_documents(self, mark_last_checked_at=False, omit_last_checked=False, omit_last_updated=False, limit=10, offset=0):
        return list(self.documents.values())[offset:offset + limit]

    async def do_delete_document(self, id):
        self.documents.pop(id)
        self.embeddings.pop(id)
        return True

    async def do_add_embedding(self, id, embedding, chunk_text, chunk_index=None):
        self.embeddings[id].append((chunk_index, chunk_text))

    async def do_delete_embeddings(self, id, from_chunk=None):
        self.deleted_embeddings.append((id, from_chunk))
        kept = [e for e in self.embeddings[id] if from_chunk is not None and (e[0] is None or e[0] < from_chunk)]
        count = len(self.embeddings[id]) - len(kept)
        self.embeddings[id] = kept
        return count

    def texts(self, id: str) -> list[str]:
        return [text for _, text in self.embeddings[id]]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def storage():
    storage = Mock()
    storage.do_list = AsyncMock(return_value=["/data/eng/a.md", "/data/eng/b.pdf", "/data/eng/broken.txt"])
    storage.do_hash = AsyncMock(return_value=[
        HashedFile(file="/data/eng/a.md", hash=HASH_A),
        HashedFile(file="/data/eng/b.pdf", hash=HASH_B),
        HashedFile(file="/data/eng/broken.txt", hash=None, error="permission denied"),
    ])
    storage.do_open = AsyncMock(return_value=b"content")
    storage.do_exists = AsyncMock(return_value=True)
    return storage


@pytest.fixture
def embed_client():
    client = Mock()
    client.do_embed = AsyncMock(side_effect=lambda batch: [[0.1, 0.2] for _ in batch])
    return client


@pytest.fixture
def versions(indexer_database):
    return VersionRepository(indexer_database)


@pytest.fixture
def service(helper_config, indexer_config, backend, storage, embed_client, versions):
    return IndexingService(
        helper_config=helper_config,
        config=indexer_config,
        backend=backend,
        storage=storage,
        embed_client=embed_client,
        versions=versions,
    )


@pytest.fixture
def chunks(monkeypatch):
    """Replace conversion and chunking with 20 fixed chunks."""
    parts = [f"chunk {i}" for i in range(20)]
    monkeypatch.setattr(indexing_module, "convert", lambda file, content: "text")
    monkeypatch.setattr(indexing_module, "chunk", lambda text, max_token_size: parts)
    return parts


class TestIndex:
    @pytest.mark.asyncio
    async def test_index_is_idempotent(self, service, storage, backend, versions):
        assert await service.do_index() == (2, 2)
        assert await service.do_index() == (0, 0)

        storage.do_list.assert_awaited_with("/data/eng", ALLOWED_TYPES, remote=None)
        assert sorted(d.file_path for d in backend.documents.values()) == ["/data/eng/a.md", "/data/eng/b.pdf"]
        document_id = await backend.do_get_document(file_path="/data/eng/a.md", workspace_id="eng")
        assert versions.has(document_id, HASH_A)

    @pytest.mark.asyncio
    async def test_new_content_adds_a_version(self, service, storage, backend, versions):
        await service.do_index()
        storage.do_hash.return_value = [HashedFile(file="/data/eng/a.md", hash=HASH_B)]

        assert await service.do_index() == (0, 1)
        document_id = await backend.do_get_document(file_path="/data/eng/a.md", workspace_id="eng")
        assert versions.latest(document_id).file_md5_hash == HASH_B

    @pytest.mark.asyncio
    async def test_unreadable_directory(self, service, storage):
        storage.do_hash.side_effect = Exception("rclone is down")
        assert await service.do_index() == (0, 0)


class TestVectorize:
    @pytest.mark.asyncio
    async def test_embeds_in_batches(self, service, backend, versions, embed_client, chunks):
        backend.add("d1", "/data/eng/a.md")
        versions.create("d1", HASH_A, "/data/eng/a.md")

        assert await service.do_vectorize() == 1

        assert [len(call.args[0]) for call in embed_client.do_embed.await_args_list] == [8, 8, 4]
        assert sorted(backend.embeddings["d1"]) == list(enumerate(chunks))
        assert backend.deleted_embeddings == [("d1", None)]
        assert backend.documents["d1"].file_md5_hash == HASH_A
        version = versions.latest("d1")
        assert (version.total_chunks, version.completed_chunks) == (20, 20)
        assert version.processed_at is not None

    @pytest.mark.asyncio
    async def test_resumes_after_completed_batches(self, service, backend, versions, embed_client, chunks):
        backend.add("d1", "/data/eng/a.md")
        versions.create("d1", HASH_A, "/data/eng/a.md")
        versions.update_progress("d1", HASH_A, 20, 8)

        assert await service.do_vectorize() == 1

        assert embed_client.do_embed.await_args_list[0].args[0] == chunks[8:16]
        assert embed_client.do_embed.await_count == 2
        assert backend.deleted_embeddings == [("d1", 8)]

    @pytest.mark.asyncio
    async def test_restarts_when_chunk_count_changed(self, service, backend, versions, embed_client, chunks):
        backend.add("d1", "/data/eng/a.md")
        versions.create("d1", HASH_A, "/data/eng/a.md")
        versions.update_progress("d1", HASH_A, 30, 8)

        await service.do_vectorize()

        assert embed_client.do_embed.await_args_list[0].args[0] == chunks[0:8]
        assert backend.deleted_embeddings == [("d1", None)]

    @pytest.mark.asyncio
    async def test_progress_survives_failure(self, service, backend, versions, embed_client, chunks):
        backend.add("d1", "/data/eng/a.md")
        versions.create("d1", HASH_A, "/data/eng/a.md")
        embed_client.do_embed.side_effect = [[[0.1]] * 8, Exception("embedding provider unavailable")]

        assert await service.do_vectorize() == 0

        version = versions.latest("d1")
        assert (version.total_chunks, version.completed_chunks) == (20, 8)
        assert version.processed_at is None
        assert backend.documents["d1"].file_md5_hash is None

    @pytest.mark.asyncio
    async def test_failed_upload_leaves_no_duplicates(self, service, backend, versions, chunks):
        backend.add("d1", "/data/eng/a.md")
        versions.create("d1", HASH_A, "/data/eng/a.md")
        upload = backend.do_add_embedding
        failures = ["chunk 12"]

        async def flaky_upload(id, embedding, chunk_text, chunk_index=None):
            if chunk_text in failures:
                failures.remove(chunk_text)
                raise Exception("connection reset")
            await upload(id, embedding, chunk_text, chunk_index=chunk_index)

        backend.do_add_embedding = flaky_upload

        assert await service.do_vectorize() == 0
        assert versions.latest("d1").completed_chunks == 8
        assert len(backend.embeddings["d1"]) == 15

        assert await service.do_vectorize() == 1

        assert backend.deleted_embeddings == [("d1", None), ("d1", 8)]
        assert sorted(backend.texts("d1")) == sorted(chunks)
        assert sorted(index for index, _ in backend.embeddings["d1"]) == list(range(20))

    @pytest.mark.asyncio
    async def test_skips_up_to_date_documents(self, service, backend, versions, storage, chunks):
        backend.add("d1", "/data/eng/a.md", file_md5_hash=HASH_A)
        versions.create("d1", HASH_A, "/data/eng/a.md")
        backend.add("d2", "/data/eng/b.md")

        assert await service.do_vectorize() == 0
        storage.do_open.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_document_is_processed(self, service, backend, versions, embed_client, monkeypatch):
        monkeypatch.setattr(indexing_module, "convert", lambda file, content: "")
        backend.add("d1", "/data/eng/empty.md")
        versions.create("d1", HASH_A, "/data/eng/empty.md")

        assert await service.do_vectorize() == 1

        embed_client.do_embed.assert_not_awaited()
        assert versions.latest("d1").processed_at is not None
        assert backend.documents["d1"].file_md5_hash == HASH_A


class TestVersionAccess:
    @pytest.mark.asyncio
    async def test_version_queries_run_in_worker_threads(self, service, backend, monkeypatch, chunks):
        called: list[str] = []
        to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args, **kwargs):
            called.append(func.__name__)
            return await to_thread(func, *args, **kwargs)

        monkeypatch.setattr(indexing_module.asyncio, "to_thread", recording_to_thread)

        await service.do_index()
        await service.do_vectorize()

        assert {"has", "create", "latest", "update_progress"} <= set(called)


class TestReduce:
    @pytest.mark.asyncio
    async def test_deletes_missing_files(self, service, backend, versions, storage):
        backend.add("d1", "/data/eng/a.md")
        backend.add("d2", "/data/eng/gone.md")
        versions.create("d2", HASH_A, "/data/eng/gone.md")
        storage.do_exists.side_effect = lambda file, remote=None: file == "/data/eng/a.md"

        assert await service.do_reduce() == 1

        assert list(backend.documents) == ["d1"]
        assert versions.latest("d2") is None

    @pytest.mark.asyncio
    async def test_keeps_documents_on_storage_errors(self, service, backend, storage):
        backend.add("d1", "/data/eng/a.md")
        storage.do_exists.side_effect = Exception("timeout")

        assert await service.do_reduce() == 0
        assert list(backend.documents) == ["d1"]
