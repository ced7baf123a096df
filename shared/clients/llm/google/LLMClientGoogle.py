import uuid

from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.models.Chat import ChatResult, ToolCall, ToolSpec
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ChatOpts


class LLMClientGoogle(LLMClientInterface):
    """Chat through the Gemini API (generateContent)."""

    def __init__(self, helper_config: HelperConfig, opts: ChatOpts):
        super().__init__(helper_config=helper_config, opts=opts)
        self._base_url = self.get_config_val("base_url", default="https://generativelanguage.googleapis.com/v1beta")
        self._model_path = self.chat_model if self.chat_model.startswith("models/") else f"models/{self.chat_model}"

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

    def _get_endpoint_chat(self) -> str:
        return f"/{self._model_path}:generateContent"

    ################ PAYLOAD BUILDER ##################
    def get_chat_payload(self, messages: list[dict], tools: list[ToolSpec] | None = None) -> dict:
        """Build the Gemini generateContent body.

        System messages become the system instruction, assistant turns use the
        "model" role and consecutive tool results are grouped into one user turn.
        """
        system_parts = [{"text": m["content"]} for m in messages if m["role"] == "system"]
        contents: list[dict] = []
        for message in messages:
            role = message["role"]
            if role == "system":
                continue
            if role == "tool":
                part = {"functionResponse": {"name": message.get("name", ""), "response": {"content": message["content"]}}}
                if contents and contents[-1].get("_tool_results"):
                    contents[-1]["parts"].append(part)
                else:
                    contents.append({"role": "user", "parts": [part], "_tool_results": True})
                continue
            parts: list[dict] = []
            if message.get("content"):
                parts.append({"text": message["content"]})
            for call in message.get("tool_calls") or []:
                parts.append({"functionCall": {"name": call["name"], "args": call["arguments"]}})
            contents.append({"role": "model" if role == "assistant" else "user", "parts": parts})

        # strip grouping markers
        contents = [{"role": c["role"], "parts": c["parts"]} for c in contents]

        body: dict = {
            "contents": contents,
            "generationConfig": {"temperature": self.temperature},
        }
        if system_parts:
            body["systemInstruction"] = {"parts": system_parts}
        if tools:
            body["tools"] = [{"functionDeclarations": [tool.model_dump() for tool in tools]}]
        return body

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> ChatResult:
        """Extract text and function calls of the first candidate.

        Raises:
            ValueError: If the response has no candidate (e.g. the prompt was blocked).
        """
        candidates = response_data.get("candidates")
        if not candidates:
            raise ValueError(
                "Gemini response does not contain candidates. Prompt feedback: %s"
                % response_data.get("promptFeedback")
            )
        parts = (candidates[0].get("content") or {}).get("parts") or []
        texts = [part["text"] for part in parts if part.get("text")]
        tool_calls = [
            ToolCall(
                id=uuid.uuid4().hex,
                name=part["functionCall"]["name"],
                arguments=part["functionCall"].get("args") or {},
            )
            for part in parts
            if "functionCall" in part
        ]
        return ChatResult(content="".join(texts), tool_calls=tool_calls)
