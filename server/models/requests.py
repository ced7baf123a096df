from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str

    @field_validator("content", mode="before")
    @classmethod
    def _join_text_parts(cls, value: Any) -> Any:
        # OpenAI clients may send content as [{"type": "text", "text": "..."}]
        if isinstance(value, list):
            return "\n".join(
                part.get("text", "") for part in value if isinstance(part, dict) and part.get("type") == "text"
            )
        return value


class ChatCompletionRequest(BaseModel):
    # unsupported OpenAI parameters (temperature, top_p, ...) are ignored
    model_config = ConfigDict(extra="ignore")

    model: str = Field(min_length=1, max_length=128)
    messages: list[ChatMessage] = Field(min_length=1)
    stream: bool = False
