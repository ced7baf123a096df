import json
import math

from pydantic import BaseModel

from server.core.PromptBuilder import build_system_prompt
from server.core.tools.ToolManager import Toolset, ToolManager
from server.models.permissions import WorkspacePermission
from server.models.requests import ChatMessage
from server.stores.VectorStoreManager import VectorStoreManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.llm.models.Chat import ChatResult, ToolCall, ToolSpec
from shared.helper.HelperConfig import HelperConfig
from shared.helper.schema_sanitizer import sanitize_for_provider
from shared.models.config import OutputModelConfig
from shared.models.exceptions import LimitExceeded

APOLOGY = "I'm sorry, something went wrong while generating a response. Please try again later."


class RagResult(BaseModel):
    response: str


##########################################
################ LIMITS ##################
##########################################

def tokens(messages: list[ChatMessage]) -> int:
    """Approximate token count: one token per four characters of content."""
    return math.ceil(sum(len(message.content) for message in messages) / 4)


def limits(messages: list[ChatMessage], output_model: OutputModelConfig) -> None:
    """Check a conversation against the limits of the output model.

    Raises:
        LimitExceeded: If there are too many messages, a message is too long
            or the estimated token count is too high.
    """
    max_messages = output_model.limits.max_messages
    max_message_length = output_model.limits.max_message_length
    max_tokens = output_model.limits.max_tokens

    if len(messages) > max_messages:
        raise LimitExceeded(f"Conversation is too long. Max number of messages exceed {max_messages}")
    for message in messages:
        if len(message.content) > max_message_length:
            raise LimitExceeded(f"Max message length exceeds {max_message_length}")
    if tokens(messages) > max_tokens:
        raise LimitExceeded(f"Conversation is too long. Token count exceeds {max_tokens}")


class RagService:
    """Answers a conversation with the chat model of an output model.

    The model decides itself when to search the knowledge base: retrieval is
    offered as a tool next to the configured static and MCP tools.
    """

    def __init__(
        self,
        helper_config: HelperConfig,
        llm_manager: LLMClientManager,
        store_manager: VectorStoreManager,
        tool_manager: ToolManager,
    ):
        self.logging = helper_config.get_logger()
        self._llm_manager = llm_manager
        self._store_manager = store_manager
        self._tool_manager = tool_manager

    ##########################################
    ################# CORE ###################
    ##########################################

    async def perform(
        self,
        output_model: OutputModelConfig,
        messages: list[ChatMessage],
        permissions: list[WorkspacePermission],
    ) -> RagResult:
        """Generate the assistant answer for a conversation.

        Never raises. Failures are logged and answered with an apology.

        Args:
            output_model (OutputModelConfig): The requested output model.
            messages (list[ChatMessage]): The full conversation.
            permissions (list[WorkspacePermission]): Permissions of the caller, restricting retrieval.

        Returns:
            RagResult: The final assistant message.
        """
        try:
            return RagResult(response=await self._perform(output_model, messages, permissions))
        except Exception:
            self.logging.exception("Failed to generate a response for model '%s'.", output_model.id)
            return RagResult(response=APOLOGY)

    async def _perform(
        self,
        output_model: OutputModelConfig,
        messages: list[ChatMessage],
        permissions: list[WorkspacePermission],
    ) -> str:
        llm_client = self._llm_manager.get_client(output_model.id)
        store = self._store_manager.get_store()
        retriever = store.as_retriever(store_filter=store.filter(permissions))

        async with self._tool_manager.open_toolset(retriever) as toolset:
            specs = [self._sanitized_spec(tool.get_spec(), output_model.chat.provider) for tool in toolset.tools]
            system_prompt = build_system_prompt(toolset.tools, toolset.mcp_instructions)
            history: list[dict] = [
                {"role": "system", "content": system_prompt},
                *[message.model_dump() for message in messages],
            ]
            return await self._run_agent(llm_client, history, specs, toolset, output_model.max_iterations)

    async def _run_agent(
        self,
        llm_client: LLMClientInterface,
        history: list[dict],
        specs: list[ToolSpec],
        toolset: Toolset,
        max_iterations: int,
    ) -> str:
        for iteration in range(max_iterations):
            result: ChatResult = await llm_client.do_chat(history, specs)
            if not result.tool_calls:
                return result.content

            self.logging.debug(
                "Iteration %d: model requested tool(s) %s",
                iteration + 1,
                ", ".join(call.name for call in result.tool_calls),
            )
            history.append({
                "role": "assistant",
                "content": result.content,
                "tool_calls": [call.model_dump() for call in result.tool_calls],
            })
            for call in result.tool_calls:
                history.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "name": call.name,
                    "content": await self._call_tool(toolset, call),
                })

        self.logging.warning("Reached %d tool iterations, requesting a final answer without tools.", max_iterations)
        result = await llm_client.do_chat(history, None)
        return result.content

    async def _call_tool(self, toolset: Toolset, call: ToolCall) -> str:
        tool = toolset.get(call.name)
        if tool is None:
            self.logging.warning("Model called unknown tool '%s'.", call.name)
            return f"Error: unknown tool '{call.name}'."
        try:
            output = await tool.do_run(call.arguments)
        except Exception as e:
            self.logging.error("Tool '%s' failed with arguments %s: %s", call.name, json.dumps(call.arguments), e)
            return f"Error: {e}"
        self.logging.debug("Tool '%s' returned %d character(s).", call.name, len(output))
        return output

    @staticmethod
    def _sanitized_spec(spec: ToolSpec, provider: str) -> ToolSpec:
        return spec.model_copy(update={"parameters": sanitize_for_provider(spec.parameters, provider)})
