from typing import Literal

from pydantic import BaseModel, Field


class ChatCompletionMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str


class ChatCompletionChoice(BaseModel):
    index: int = 0
    message: ChatCompletionMessage
    finish_reason: Literal["stop"] = "stop"


class Usage(BaseModel):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletionResponse(BaseModel):
    id: str
    object: Literal["chat.completion"] = "chat.completion"
    created: int
    model: str
    choices: list[ChatCompletionChoice]
    usage: Usage


class ModelCapabilities(BaseModel):
    vision: bool = False
    function_calling: bool = False
    tool_calling: bool = False
    code_interpreter: bool = False
    retrieval: bool = False
    image_generation: bool = False
    audio: bool = False
    multimodal: bool = False


class ModelObject(BaseModel):
    id: str
    object: Literal["model"] = "model"
    created: int
    owned_by: str
    supports_streaming: bool = False
    capabilities: ModelCapabilities = Field(default_factory=ModelCapabilities)


class ModelList(BaseModel):
    object: Literal["list"] = "list"
    data: list[ModelObject]


class ErrorDetail(BaseModel):
    message: str
    type: str = "invalid_request_error"
    param: str | None = None
    code: str


class ErrorResponse(BaseModel):
    error: ErrorDetail


##########################################
############# ERROR BUILDERS #############
##########################################

def model_not_found(model: str) -> dict:
    return ErrorResponse(
        error=ErrorDetail(message=f"The model '{model}' does not exist", param="model", code="model_not_found")
    ).model_dump()


def streaming_not_supported() -> dict:
    return ErrorResponse(
        error=ErrorDetail(message="Streaming is not supported by this model", param="stream", code="invalid_request")
    ).model_dump()


def no_user_message() -> dict:
    return ErrorResponse(
        error=ErrorDetail(message="No user message found", param="messages", code="invalid_request")
    ).model_dump()


def missing_required_fields() -> dict:
    return ErrorResponse(
        error=ErrorDetail(message="Missing required fields: model and messages", code="invalid_request")
    ).model_dump()


def context_length_exceeded(message: str) -> dict:
    return ErrorResponse(
        error=ErrorDetail(message=message, param="messages", code="context_length_exceeded")
    ).model_dump()
