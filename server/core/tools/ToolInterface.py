from abc import ABC, abstractmethod

from shared.clients.llm.models.Chat import ToolSpec


class ToolInterface(ABC):
    """A function the chat model may call during a conversation.

    Attributes:
        name (str): Unique name the model calls the tool by.
        description (str): Shown to the model and listed in the system prompt.
        instructions (str | None): Extra usage policy added to the system prompt.
    """

    name: str = ""
    description: str = ""
    instructions: str | None = None

    @abstractmethod
    def get_parameters(self) -> dict:
        """
        Returns the JSON schema of the tool arguments.
        """
        pass

    @abstractmethod
    async def do_run(self, arguments: dict) -> str:
        """
        Execute the tool.

        Args:
            arguments (dict): Arguments chosen by the model.

        Returns:
            str: The result handed back to the model.
        """
        pass

    def get_spec(self) -> ToolSpec:
        return ToolSpec(name=self.name, description=self.description, parameters=self.get_parameters())
