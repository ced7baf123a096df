"""Tool discovery from MCP servers.

Every chat request opens one session per configured server, lists its tools
and closes all sessions when the request is done. Servers which cannot be
reached are logged and skipped.
"""

from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator

from mcp import ClientSession
from mcp.client.sse import sse_client
from mcp.client.streamable_http import streamablehttp_client
from mcp.types import Tool
from pydantic import BaseModel

from server.core.tools.ToolInterface import ToolInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import McpServerConfig


class McpInstructions(BaseModel):
    name: str
    instructions: str | None = None


class McpTool(ToolInterface):
    """A tool offered by a connected MCP server."""

    def __init__(self, server: str, session: ClientSession, tool: Tool):
        self.server = server
        self.name = tool.name
        self.description = tool.description or ""
        self._session = session
        self._input_schema = tool.inputSchema or {"type": "object", "properties": {}}

    def get_parameters(self) -> dict:
        return self._input_schema

    async def do_run(self, arguments: dict) -> str:
        result = await self._session.call_tool(self.name, arguments)
        text = "\n".join(content.text for content in result.content if getattr(content, "type", None) == "text")
        if result.isError:
            return f"Error: {text or 'the tool reported an error without details.'}"
        return text


class McpToolProvider:
    def __init__(self, helper_config: HelperConfig, servers: list[McpServerConfig]):
        self.logging = helper_config.get_logger()
        self._servers = servers

    @asynccontextmanager
    async def connect(self) -> AsyncIterator[tuple[list[McpTool], list[McpInstructions]]]:
        """Connect to all servers for the duration of the context.

        Yields:
            tuple[list[McpTool], list[McpInstructions]]: The discovered tools and the
                instructions each server announced at initialization.
        """
        async with AsyncExitStack() as stack:
            tools: list[McpTool] = []
            instructions: list[McpInstructions] = []
            for server in self._servers:
                try:
                    session, server_instructions, server_tools = await self._connect(stack, server)
                except Exception as e:
                    self.logging.error("MCP server '%s' (%s) is not available: %s", server.name, server.url, e)
                    continue
                tools.extend(McpTool(server.name, session, tool) for tool in server_tools)
                instructions.append(McpInstructions(name=server.name, instructions=server_instructions))
                self.logging.debug("MCP server '%s' offers %d tool(s).", server.name, len(server_tools))
            yield tools, instructions

    async def _connect(self, stack: AsyncExitStack, server: McpServerConfig) -> tuple[ClientSession, str | None, list[Tool]]:
        server_stack = AsyncExitStack()
        try:
            headers = dict(server.headers) or None
            if server.transport == "sse":
                read, write = await server_stack.enter_async_context(sse_client(server.url, headers=headers))
            else:
                read, write, _ = await server_stack.enter_async_context(streamablehttp_client(server.url, headers=headers))
            session = await server_stack.enter_async_context(ClientSession(read, write))
            initialized = await session.initialize()
            listed = await session.list_tools()
        except BaseException:
            await server_stack.aclose()
            raise
        stack.push_async_callback(server_stack.aclose)
        return session, initialized.instructions, listed.tools
