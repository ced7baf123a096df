from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EmbeddingsOpts


class EmbedClientOpenai(EmbedClientInterface):
    """Embeddings through any OpenAI-compatible /embeddings endpoint."""

    def __init__(self, helper_config: HelperConfig, opts: EmbeddingsOpts):
        super().__init__(helper_config=helper_config, opts=opts)
        self._base_url = self.get_config_val("base_url", default="https://api.openai.com/v1")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "OpenAI"

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/models"

    def get_endpoint_embedding(self) -> str:
        return "/embeddings"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        return {"model": self.embed_model, "input": texts}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from an OpenAI response, sorted by their input index."""
        data = response_data.get("data")
        if not data:
            raise ValueError(
                "OpenAI response does not contain embedding data. "
                "Response keys: %s" % list(response_data.keys())
            )
        return [item["embedding"] for item in sorted(data, key=lambda item: item.get("index", 0))]
