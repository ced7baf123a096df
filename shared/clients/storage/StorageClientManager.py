from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.clients.storage.local.StorageClientLocal import StorageClientLocal
from shared.clients.storage.rclone.StorageClientRclone import StorageClientRclone
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import StorageConfig

# provider names are validated by the config schema, see StorageProvider
ENGINES: dict[str, type[StorageClientInterface]] = {
    "local": StorageClientLocal,
    "rclone": StorageClientRclone,
}


class StorageClientManager:
    """Manager class to instantiate the configured storage client."""

    def __init__(self, helper_config: HelperConfig, config: StorageConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        client_class = ENGINES.get(config.provider)
        if client_class is None:
            raise ValueError(f"Unsupported storage provider: '{config.provider}'")
        self.client = client_class(helper_config=helper_config, opts=config.opts)
        self.logging.debug("Instantiated storage client for provider: %s", config.provider)

    def get_client(self) -> StorageClientInterface:
        return self.client
