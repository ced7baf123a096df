from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.embed.google.EmbedClientGoogle import EmbedClientGoogle
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.embed.openai.EmbedClientOpenai import EmbedClientOpenai
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EmbeddingsConfig

# provider names are validated by the config schema, see EmbeddingsProvider
ENGINES: dict[str, type[EmbedClientInterface]] = {
    "google": EmbedClientGoogle,
    "ollama": EmbedClientOllama,
    "openai": EmbedClientOpenai,
}


class EmbedClientManager:
    """
    Manager class to instantiate the configured Embed client.
    """

    def __init__(self, helper_config: HelperConfig, config: EmbeddingsConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client(config)

    def _initialize_client(self, config: EmbeddingsConfig) -> EmbedClientInterface:
        """
        Instantiates the Embed client registered for the configured provider.

        Raises:
            ValueError: If no client is registered for the provider.
        """
        client_class = ENGINES.get(config.provider)
        if client_class is None:
            raise ValueError(f"Unsupported Embed provider: '{config.provider}'")
        client = client_class(helper_config=self.helper_config, opts=config.opts)
        self.logging.debug("Instantiated Embed client for provider: %s", config.provider)
        return client

    def get_client(self) -> EmbedClientInterface:
        return self.client
