from server.stores.VectorStoreInterface import VectorStoreInterface
from server.stores.libsql.VectorStoreLibsql import VectorStoreLibsql
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.db.Database import Database
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import RagConfig

# provider names are validated by the config schema, see VectorStoreProvider
ENGINES: dict[str, type[VectorStoreInterface]] = {
    "libsql": VectorStoreLibsql,
}


class VectorStoreManager:
    """Builds the configured vector store on first use and keeps it for the process lifetime."""

    def __init__(
        self,
        helper_config: HelperConfig,
        config: RagConfig,
        database: Database,
        embed_client: EmbedClientInterface,
    ):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._config = config
        self._database = database
        self._embed_client = embed_client
        self._store: VectorStoreInterface | None = None

    def get_store(self) -> VectorStoreInterface:
        if self._store is None:
            provider = self._config.vector_store.provider
            store_class = ENGINES.get(provider)
            if store_class is None:
                raise ValueError(f"Unsupported vector store provider: '{provider}'")
            self._store = store_class(
                helper_config=self.helper_config,
                database=self._database,
                embed_client=self._embed_client,
                retriever_opts=self._config.retriever.opts,
            ).initialize()
        return self._store
