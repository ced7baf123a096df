import asyncio

import sqlite_vec
from sqlalchemy import false, func, inspect, select

from server.db.models import Document, Embedding
from server.models.permissions import WorkspacePermission, readable_workspaces
from server.stores.VectorStoreInterface import VectorStoreInterface
from server.stores.models.Retrieval import RetrievedChunk, StoreFilter


class VectorStoreLibsql(VectorStoreInterface):
    """Vector search inside the API's sqlite database using the sqlite-vec extension.

    Embeddings are stored as float32 blobs in ``embeddings.embedding`` and
    compared with ``vec_distance_cosine`` at query time.
    """

    def get_engine_name(self) -> str:
        return "libsql"

    def _initialize(self) -> None:
        if not inspect(self._database.engine).has_table(Embedding.__tablename__):
            raise RuntimeError(
                "Table '%s' does not exist. Set DB_MIGRATIONS_APPLY=true to create it." % Embedding.__tablename__
            )
        # fails early if the extension is not loaded
        with self._database.session() as session:
            version = session.execute(select(func.vec_version())).scalar_one()
        self.logging.info("Using sqlite-vec %s for vector search.", version)

    def filter(self, permissions: list[WorkspacePermission]) -> StoreFilter:
        workspaces = readable_workspaces(permissions)
        if not workspaces:
            return StoreFilter(clause=false(), workspaces=[])
        clause = Embedding.document_id.in_(
            select(Document.id).where(Document.workspace_id.in_(workspaces))
        )
        return StoreFilter(clause=clause, workspaces=workspaces)

    async def retrieve(self, query: str, k: int, store_filter: StoreFilter) -> list[RetrievedChunk]:
        self.initialize()
        if not store_filter.workspaces:
            return []
        vector = await self._embed_client.do_embed_query(query)
        return await asyncio.to_thread(self._search, vector, k, store_filter)

    def _search(self, vector: list[float], k: int, store_filter: StoreFilter) -> list[RetrievedChunk]:
        query_blob = sqlite_vec.serialize_float32(vector)
        distance = func.vec_distance_cosine(Embedding.embedding, query_blob).label("distance")
        statement = (
            select(
                Embedding.id,
                Embedding.document_id,
                Embedding.content,
                Document.workspace_id,
                Document.file_path,
                distance,
            )
            .join(Document, Document.id == Embedding.document_id)
            .where(store_filter.clause)
            # vectors of another embedding model cannot be compared
            .where(func.vec_length(Embedding.embedding) == len(vector))
            .order_by(distance)
            .limit(k)
        )
        with self._database.session() as session:
            rows = session.execute(statement).all()

        self.logging.debug("Retrieved %d chunk(s) from workspaces %s.", len(rows), store_filter.workspaces)
        return [
            RetrievedChunk(
                id=row.id,
                document_id=row.document_id,
                workspace_id=row.workspace_id,
                file_path=row.file_path,
                content=row.content,
                distance=row.distance,
            )
            for row in rows
        ]
