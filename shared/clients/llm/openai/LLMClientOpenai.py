import json

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.models.Chat import ChatResult, ToolCall, ToolSpec
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ChatOpts


class LLMClientOpenai(LLMClientInterface):
    """Chat through any OpenAI-compatible /chat/completions endpoint."""

    def __init__(self, helper_config: HelperConfig, opts: ChatOpts):
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

    def _get_endpoint_chat(self) -> str:
        return "/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict], tools: list[ToolSpec] | None = None) -> dict:
        body: dict = {
            "model": self.chat_model,
            "messages": [self._to_openai_message(message) for message in messages],
            "temperature": self.temperature,
            "stream": False,
        }
        if tools:
            body["tools"] = [{"type": "function", "function": tool.model_dump()} for tool in tools]
        return body

    def _to_openai_message(self, message: dict) -> dict:
        if message["role"] == "tool":
            return {"role": "tool", "tool_call_id": message["tool_call_id"], "content": message["content"]}
        if message["role"] == "assistant" and message.get("tool_calls"):
            return {
                "role": "assistant",
                "content": message.get("content") or None,
                "tool_calls": [
                    {
                        "id": call["id"],
                        "type": "function",
                        "function": {"name": call["name"], "arguments": json.dumps(call["arguments"])},
                    }
                    for call in message["tool_calls"]
                ],
            }
        return {"role": message["role"], "content": message["content"]}

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> ChatResult:
        """Extract the assistant reply from a chat.completion object.

        Raises:
            ValueError: If the response does not contain a choice.
        """
        choices = response_data.get("choices")
        if not choices:
            raise ValueError(
                "OpenAI chat response does not contain choices. "
                "Response keys: %s" % list(response_data.keys())
            )
        message = choices[0].get("message") or {}
        tool_calls = []
        for call in message.get("tool_calls") or []:
            function = call.get("function") or {}
            try:
                arguments = json.loads(function.get("arguments") or "{}")
            except json.JSONDecodeError:
                self.logging.warning("Tool call '%s' carried invalid JSON arguments.", function.get("name"))
                arguments = {}
            tool_calls.append(ToolCall(id=call["id"], name=function["name"], arguments=arguments))
        return ChatResult(content=message.get("content") or "", tool_calls=tool_calls)
