from contextlib import asynccontextmanager
from typing import AsyncIterator

from server.core.tools.McpToolProvider import McpInstructions, McpToolProvider
from server.core.tools.RetrievalTool import RetrievalTool
from server.core.tools.ToolInterface import ToolInterface
from server.core.tools.WeatherTool import WeatherTool
from server.stores.VectorStoreInterface import Retriever
from shared.clients.ClientInterface import ClientInterface
from shared.clients.weather.WeatherClientOpenweathermap import WeatherClientOpenweathermap
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import ApiConfig, ToolConfig


class Toolset:
    """The tools available to one chat request."""

    def __init__(self, tools: list[ToolInterface], mcp_instructions: list[McpInstructions]):
        self.tools = tools
        self.mcp_instructions = mcp_instructions
        self._by_name = {tool.name: tool for tool in tools}

    def get(self, name: str) -> ToolInterface | None:
        return self._by_name.get(name)


class ToolManager:
    """Builds the static tools once and assembles the per-request toolset."""

    def __init__(self, helper_config: HelperConfig, config: ApiConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._static_tools = [self._initialize_tool(tool) for tool in config.tools]
        self._mcp = McpToolProvider(helper_config=helper_config, servers=config.mcp_servers)

    def _initialize_tool(self, config: ToolConfig) -> ToolInterface:
        """
        Instantiates a configured static tool.

        Raises:
            ValueError: If the tool name is unknown.
        """
        if config.name == "weather":
            client = WeatherClientOpenweathermap(helper_config=self.helper_config, opts=config.opts)
            return WeatherTool(client=client)
        raise ValueError(f"Unsupported tool: '{config.name}'")

    def get_clients(self) -> list[ClientInterface]:
        """Return the HTTP clients of the static tools, to be booted and closed with the app."""
        return [tool.client for tool in self._static_tools if isinstance(tool, WeatherTool)]

    @asynccontextmanager
    async def open_toolset(self, retriever: Retriever) -> AsyncIterator[Toolset]:
        """Assemble retrieval, static and MCP tools for one request.

        MCP sessions stay open until the context exits. A tool whose name is
        already taken is skipped.
        """
        async with self._mcp.connect() as (mcp_tools, mcp_instructions):
            tools: list[ToolInterface] = []
            names: set[str] = set()
            for tool in [RetrievalTool(retriever), *self._static_tools, *mcp_tools]:
                if tool.name in names:
                    self.logging.warning("Skipping duplicate tool name '%s'.", tool.name)
                    continue
                names.add(tool.name)
                tools.append(tool)
            yield Toolset(tools=tools, mcp_instructions=mcp_instructions)
