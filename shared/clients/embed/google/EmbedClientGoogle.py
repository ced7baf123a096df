from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EmbeddingsOpts


class EmbedClientGoogle(EmbedClientInterface):
    """Embeddings through the Gemini API (batchEmbedContents)."""

    def __init__(self, helper_config: HelperConfig, opts: EmbeddingsOpts):
        super().__init__(helper_config=helper_config, opts=opts)
        self._base_url = self.get_config_val("base_url", default="https://generativelanguage.googleapis.com/v1beta")
        # model names may be given with or without the "models/" prefix
        self._model_path = self.embed_model if self.embed_model.startswith("models/") else f"models/{self.embed_model}"

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Google"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[str]:
        return ["model", "api_key"]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"x-goog-api-key": self._api_key}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return f"/{self._model_path}"

    def get_endpoint_embedding(self) -> str:
        return f"/{self._model_path}:batchEmbedContents"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        return {
            "requests": [
                {"model": self._model_path, "content": {"parts": [{"text": text}]}}
                for text in texts
            ]
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        embeddings = response_data.get("embeddings")
        if not embeddings:
            raise ValueError(
                "Gemini response does not contain embeddings. "
                "Response keys: %s" % list(response_data.keys())
            )
        return [embedding["values"] for embedding in embeddings]
