from abc import ABC, abstractmethod

from server.models.permissions import WorkspacePermission
from server.stores.models.Retrieval import RetrievedChunk, StoreFilter
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.db.Database import Database
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RetrieverOpts


class VectorStoreInterface(ABC):
    """Nearest neighbour search over the stored chunk embeddings."""

    def __init__(
        self,
        helper_config: HelperConfig,
        database: Database,
        embed_client: EmbedClientInterface,
        retriever_opts: RetrieverOpts,
    ):
        self.logging = helper_config.get_logger()
        self._database = database
        self._embed_client = embed_client
        self._retriever_opts = retriever_opts
        self._initialized = False

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    def initialize(self) -> "VectorStoreInterface":
        """Bind the store to its backend. Only the first call does any work."""
        if not self._initialized:
            self._initialize()
            self._initialized = True
            self.logging.debug("Vector store '%s' initialized.", self.get_engine_name())
        return self

    @abstractmethod
    def _initialize(self) -> None:
        pass

    @abstractmethod
    def get_engine_name(self) -> str:
        pass

    ##########################################
    ################ SEARCH ##################
    ##########################################

    @abstractmethod
    def filter(self, permissions: list[WorkspacePermission]) -> StoreFilter:
        """
        Translate workspace permissions into a search restriction.

        Args:
            permissions (list[WorkspacePermission]): The caller's permissions.

        Returns:
            StoreFilter: Admits only embeddings of documents in readable workspaces.
                Without any readable workspace nothing is admitted.
        """
        pass

    @abstractmethod
    async def retrieve(self, query: str, k: int, store_filter: StoreFilter) -> list[RetrievedChunk]:
        """
        Return the k chunks nearest to the query, restricted by the filter.

        Args:
            query (str): Free text, embedded with the configured embedding client.
            k (int): Maximum number of chunks.
            store_filter (StoreFilter): Restriction from filter().

        Returns:
            list[RetrievedChunk]: Chunks ordered by ascending distance.
        """
        pass

    def as_retriever(self, store_filter: StoreFilter, k: int | None = None) -> "Retriever":
        return Retriever(store=self.initialize(), k=k or self._retriever_opts.k, store_filter=store_filter)


class Retriever:
    """A vector store bound to a filter and a result size."""

    def __init__(self, store: VectorStoreInterface, k: int, store_filter: StoreFilter):
        self.store = store
        self.k = k
        self.store_filter = store_filter

    async def invoke(self, query: str) -> list[RetrievedChunk]:
        return await self.store.retrieve(query, self.k, self.store_filter)
