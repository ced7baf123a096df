from typing import Any

from pydantic import BaseModel, Field


class ToolSpec(BaseModel):
    """Provider independent description of a callable tool.

    Attributes:
        name (str): Unique tool name.
        description (str): What the tool does, shown to the model.
        parameters (dict): JSON schema of the tool arguments.
    """

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ToolCall(BaseModel):
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ChatResult(BaseModel):
    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
