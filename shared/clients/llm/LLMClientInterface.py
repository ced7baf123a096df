from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.llm.models.Chat import ChatResult, ToolSpec
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ChatOpts


class LLMClientInterface(ClientInterface):
    """Base class of all chat model clients.

    Messages are passed in OpenAI format. Two extensions are used by the
    tool-calling loop and translated by every engine:
    - assistant messages may carry ``tool_calls`` as a list of ToolCall dicts
      ({"id", "name", "arguments"})
    - tool results are messages with role "tool", ``tool_call_id`` and ``name``
    """

    def __init__(self, helper_config: HelperConfig, opts: ChatOpts):
        super().__init__(helper_config=helper_config, opts=opts)
        self.chat_model: str = opts.model
        self.temperature: float = opts.temperature
        self._api_key: str = self.get_config_val("api_key", default="")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[str]:
        return ["model"]

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/api/chat")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_chat_payload(self, messages: list[dict], tools: list[ToolSpec] | None = None) -> dict:
        """Build the backend-specific request body for a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages, including tool calls and tool results.
            tools (list[ToolSpec] | None): Tools the model may call.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> ChatResult:
        """Extract the assistant reply and requested tool calls from a raw chat API response.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            ChatResult: The reply text and any tool calls.

        Raises:
            ValueError: If the response does not contain a valid reply.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_chat(self, messages: list[dict], tools: list[ToolSpec] | None = None) -> ChatResult:
        """Send a chat/completion request.

        Args:
            messages (list[dict]): OpenAI-format messages.
            tools (list[ToolSpec] | None): Tools the model may call.

        Returns:
            ChatResult: The assistant reply and requested tool calls.

        Raises:
            Exception: If the HTTP request fails.
            ValueError: If the response does not contain a valid reply.
        """
        body = self.get_chat_payload(messages, tools or None)
        response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=body,
            raise_on_error=True,
        )
        return self.extract_chat_response(response.json())
