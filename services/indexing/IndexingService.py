"""Indexing service.

Keeps the API server's documents and embeddings in line with the files of
the configured workspaces. Three jobs share this service:
- index: registers every allowed file as a document and each content hash as a local version
- vectorize: converts, chunks and embeds documents whose latest version is not embedded yet
- reduce: deletes documents whose file disappeared from the storage
"""

import asyncio

from indexer.db.models import Version, VersionRepository
from services.indexing.text_converter import chunk, convert
from shared.clients.backend.BackendClient import BackendClient
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import IndexerConfig, WorkspaceConfig
from shared.models.document import DocumentOut

ALLOWED_TYPES = ["pdf", "docx", "txt", "md"]
PAGE_SIZE = 100  # documents per backend page


class IndexingService:
    def __init__(
        self,
        helper_config: HelperConfig,
        config: IndexerConfig,
        backend: BackendClient,
        storage: StorageClientInterface,
        embed_client: EmbedClientInterface,
        versions: VersionRepository,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._config = config
        self._backend = backend
        self._storage = storage
        self._embed_client = embed_client
        self._versions = versions
        self._concurrency = config.indexer.concurrency
        self._batch_size = config.indexer.batch_size
        self._max_token_size = config.indexer.max_token_size

    ##########################################
    ################# INDEX ##################
    ##########################################

    async def do_index(self) -> tuple[int, int]:
        """Register all allowed files of all workspaces.

        Returns:
            tuple[int, int]: Number of created documents and created versions.
        """
        sem = asyncio.Semaphore(self._concurrency)
        results = await asyncio.gather(
            *[
                self._index_dir(workspace, dir, sem)
                for workspace in self._config.workspaces
                for dir in workspace.dirs
            ]
        )
        indexed = sum(documents for documents, _ in results)
        versioned = sum(versions for _, versions in results)
        self.logging.info("Indexed %d file(s)", indexed)
        self.logging.info("Versioned %d file(s)", versioned)
        return indexed, versioned

    async def _index_dir(self, workspace: WorkspaceConfig, dir: str, sem: asyncio.Semaphore) -> tuple[int, int]:
        try:
            files = await self._storage.do_list(dir, ALLOWED_TYPES, remote=workspace.remote)
            hashed_files = await self._storage.do_hash(files, remote=workspace.remote)
        except Exception as e:
            self.logging.warning("Skipping directory '%s' of workspace '%s': %s", dir, workspace.id, e)
            return 0, 0
        self.logging.debug("Found %d file(s) in '%s' of workspace '%s'.", len(files), dir, workspace.id)

        for hashed in hashed_files:
            if hashed.hash is None:
                self.logging.warning("Skipping file '%s': hashing failed (%s).", hashed.file, hashed.error)
        hashed_files = [hashed for hashed in hashed_files if hashed.hash is not None]
        results = await asyncio.gather(
            *[self._persist(workspace, hashed.file, hashed.hash, sem) for hashed in hashed_files],
            return_exceptions=True,
        )

        created_documents = created_versions = 0
        for hashed_file, result in zip(hashed_files, results):
            if isinstance(result, Exception):
                self.logging.error("Error indexing file '%s': %s", hashed_file.file, result)
                continue
            created_documents += result[0]
            created_versions += result[1]
        return created_documents, created_versions

    async def _persist(self, workspace: WorkspaceConfig, file: str, file_hash: str, sem: asyncio.Semaphore) -> tuple[int, int]:
        """Make sure a document exists for the file and a version for its hash.

        Returns:
            tuple[int, int]: 1 for each created document and version, 0 otherwise.
        """
        async with sem:
            created_documents = created_versions = 0
            document_id = await self._backend.do_get_document(file_path=file, workspace_id=workspace.id)
            if document_id is None:
                document_id, created = await self._backend.do_create_document(
                    workspace_id=workspace.id,
                    file_remote=workspace.remote or "",
                    file_path=file,
                )
                if created:
                    created_documents += 1
                    self.logging.debug("Created document for file: %s", file)

            if not await asyncio.to_thread(self._versions.has, document_id, file_hash):
                await asyncio.to_thread(self._versions.create, document_id, file_hash, file)
                created_versions += 1
                self.logging.debug("Created version for remote id %s", document_id)
            return created_documents, created_versions

    ##########################################
    ############### VECTORIZE ################
    ##########################################

    async def do_vectorize(self) -> int:
        """Embed every document whose latest version differs from its recorded hash.

        Returns:
            int: Number of fully vectorized documents.
        """
        documents = await self._find_all(omit_last_updated=True)
        candidates: list[tuple[DocumentOut, Version]] = []
        for document in documents:
            version = await asyncio.to_thread(self._versions.latest, document.id)
            if version is not None and document.file_md5_hash != version.file_md5_hash:
                candidates.append((document, version))
        self.logging.info("Loaded %d document(s), %d to vectorize.", len(documents), len(candidates))

        sem = asyncio.Semaphore(self._concurrency)
        results = await asyncio.gather(
            *[self._vectorize_document(document, version, sem) for document, version in candidates],
            return_exceptions=True,
        )

        vectorized = 0
        for (document, _), result in zip(candidates, results):
            if isinstance(result, Exception):
                self.logging.error("Error vectorizing '%s': %s", document.file_path, result)
            elif result:
                vectorized += 1
        self.logging.info(
            "Vectorize complete: %d vectorized, %d errors.",
            vectorized,
            sum(1 for r in results if isinstance(r, Exception)),
        )
        return vectorized

    async def _vectorize_document(self, document: DocumentOut, version: Version, sem: asyncio.Semaphore) -> bool:
        """
        Convert, chunk and embed the latest version of a document.

        Progress is persisted after every batch. A version with completed
        chunks continues where it stopped unless its chunk count changed.
        Every embedding carries its chunk index, so a resumed run first drops
        the embeddings past the checkpoint.

        Raises:
            Exception: Propagated to gather() if reading, embedding or uploading fails.
        """
        async with sem:
            self.logging.info("Loaded file: %s", document.file_path)
            file_hash = version.file_md5_hash
            content = await self._storage.do_open(document.file_path, file_hash, remote=document.file_remote or None)
            text = await asyncio.to_thread(convert, document.file_path, content)
            chunks = chunk(text, self._max_token_size)
            total = len(chunks)

            completed = version.completed_chunks or 0
            if completed and version.total_chunks != total:
                self.logging.warning(
                    "Chunk count of '%s' changed from %d to %d, restarting.",
                    document.file_path, version.total_chunks, total,
                )
                completed = 0
            # chunks at or after the checkpoint may be left over from an interrupted batch
            deleted = await self._backend.do_delete_embeddings(document.id, from_chunk=completed or None)
            self.logging.debug("Deleted %d embedding(s) of document %s from chunk %d.", deleted, document.id, completed)
            if not chunks:
                self.logging.warning("No chunks found in: %s", document.file_path)

            while completed < total:
                self.logging.info("Started processing from %d. chunk.", completed)
                batch = chunks[completed:completed + self._batch_size]
                vectors = await self._embed_client.do_embed(batch)
                uploads = await asyncio.gather(
                    *[
                        self._backend.do_add_embedding(document.id, vector, chunk_text, chunk_index=completed + i)
                        for i, (vector, chunk_text) in enumerate(zip(vectors, batch))
                    ],
                    return_exceptions=True,
                )
                failed = [result for result in uploads if isinstance(result, Exception)]
                if failed:
                    raise failed[0]
                completed += len(batch)
                await asyncio.to_thread(self._versions.update_progress, document.id, file_hash, total, completed)
                self.logging.info("Processed %d chunks, completed a total of %d chunks.", len(batch), completed)

            if total == 0:
                await asyncio.to_thread(self._versions.update_progress, document.id, file_hash, 0, 0)
            await self._backend.do_update_document(document.id, file_hash)
            self.logging.debug("Updated document: %s", document.id)
            return True

    ##########################################
    ################# REDUCE #################
    ##########################################

    async def do_reduce(self) -> int:
        """Delete documents whose file no longer exists.

        Returns:
            int: Number of deleted documents.
        """
        documents = await self._backend.do_find_documents(
            mark_last_checked_at=True,
            omit_last_checked=True,
            limit=PAGE_SIZE,
        )
        self.logging.info("Loaded %d documents.", len(documents))

        sem = asyncio.Semaphore(self._concurrency)
        results = await asyncio.gather(
            *[self._reduce_document(document, sem) for document in documents],
            return_exceptions=True,
        )

        removed = 0
        for document, result in zip(documents, results):
            if isinstance(result, Exception):
                self.logging.error("Error checking '%s': %s", document.file_path, result)
            elif result:
                removed += 1
        self.logging.info("Removed %d document(s).", removed)
        return removed

    async def _reduce_document(self, document: DocumentOut, sem: asyncio.Semaphore) -> bool:
        async with sem:
            if await self._storage.do_exists(document.file_path, remote=document.file_remote or None):
                return False
            await self._backend.do_delete_document(document.id)
            await asyncio.to_thread(self._versions.delete_for_document, document.id)
            self.logging.info("Removed document %s, file '%s' no longer exists.", document.id, document.file_path)
            return True

    ##########################################
    ################ HELPERS #################
    ##########################################

    async def _find_all(self, **filters) -> list[DocumentOut]:
        documents: list[DocumentOut] = []
        offset = 0
        while True:
            page = await self._backend.do_find_documents(limit=PAGE_SIZE, offset=offset, **filters)
            documents.extend(page)
            if len(page) < PAGE_SIZE:
                return documents
            offset += PAGE_SIZE
