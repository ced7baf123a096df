from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.google.LLMClientGoogle import LLMClientGoogle
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.clients.llm.openai.LLMClientOpenai import LLMClientOpenai
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import OutputModelConfig

# provider names are validated by the config schema, see ChatProvider
ENGINES: dict[str, type[LLMClientInterface]] = {
    "google": LLMClientGoogle,
    "ollama": LLMClientOllama,
    "openai": LLMClientOpenai,
}


class LLMClientManager:
    """Manager class to instantiate one chat client per configured output model."""

    def __init__(self, helper_config: HelperConfig, output_models: list[OutputModelConfig]):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.clients = self._initialize_clients(output_models)

    def _initialize_clients(self, output_models: list[OutputModelConfig]) -> dict[str, LLMClientInterface]:
        """Instantiate the chat client of every output model.

        Returns:
            dict[str, LLMClientInterface]: Clients keyed by output model id.

        Raises:
            ValueError: If no client is registered for a provider.
        """
        clients: dict[str, LLMClientInterface] = {}
        for model in output_models:
            client_class = ENGINES.get(model.chat.provider)
            if client_class is None:
                raise ValueError("Unsupported chat provider '%s' for model '%s'." % (model.chat.provider, model.id))
            clients[model.id] = client_class(helper_config=self.helper_config, opts=model.chat.opts)
            self.logging.debug("Instantiated %s chat client for model: %s", model.chat.provider, model.id)
        return clients

    def get_client(self, model_id: str) -> LLMClientInterface:
        """Return the chat client of an output model.

        Raises:
            KeyError: If the model id is not configured.
        """
        return self.clients[model_id]

    def get_clients(self) -> list[LLMClientInterface]:
        return list(self.clients.values())
