import uuid

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.models.Chat import ChatResult, ToolCall, ToolSpec
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ChatOpts


class LLMClientOllama(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig, opts: ChatOpts):
        super().__init__(helper_config=helper_config, opts=opts)
        self._base_url = self.get_config_val("base_url", default="http://localhost:11434")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Ollama"

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._api_key:
            return {"Authorization": f"Bearer {self._api_key}"}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return ""

    def _get_endpoint_chat(self) -> str:
        return "/api/chat"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict], tools: list[ToolSpec] | None = None) -> dict:
        """Build the Ollama chat request body.

        Returns:
            dict: {"model": "...", "messages": [...], "stream": False, "options": {...}, "tools": [...]}
        """
        body: dict = {
            "model": self.chat_model,
            "messages": [self._to_ollama_message(message) for message in messages],
            "stream": False,
            "options": {"temperature": self.temperature},
        }
        if tools:
            body["tools"] = [{"type": "function", "function": tool.model_dump()} for tool in tools]
        return body

    def _to_ollama_message(self, message: dict) -> dict:
        if message["role"] == "tool":
            return {"role": "tool", "content": message["content"], "tool_name": message.get("name", "")}
        if message["role"] == "assistant" and message.get("tool_calls"):
            return {
                "role": "assistant",
                "content": message.get("content") or "",
                "tool_calls": [
                    {"function": {"name": call["name"], "arguments": call["arguments"]}}
                    for call in message["tool_calls"]
                ],
            }
        return {"role": message["role"], "content": message["content"]}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> ChatResult:
        """Extract the assistant reply from an Ollama /api/chat response.

        Raises:
            ValueError: If the response does not contain a valid message.
        """
        message = response_data.get("message")
        if not isinstance(message, dict):
            raise ValueError(
                "Ollama chat response does not contain a valid message. "
                "Response keys: %s" % list(response_data.keys())
            )
        # ollama does not assign ids to tool calls
        tool_calls = [
            ToolCall(
                id=uuid.uuid4().hex,
                name=call["function"]["name"],
                arguments=call["function"].get("arguments") or {},
            )
            for call in message.get("tool_calls") or []
        ]
        return ChatResult(content=message.get("content") or "", tool_calls=tool_calls)
