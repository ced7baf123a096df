import asyncio
import time
import uuid
from typing import Any, Awaitable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from server.core.RagService import RagResult, limits, tokens
from server.dependencies.auth import verify_chat_access
from server.models.permissions import WorkspacePermission
from server.models.requests import ChatCompletionRequest, ChatMessage
from server.models.responses import (
    ChatCompletionChoice,
    ChatCompletionMessage,
    ChatCompletionResponse,
    ModelList,
    ModelObject,
    Usage,
    context_length_exceeded,
    missing_required_fields,
    model_not_found,
    no_user_message,
    streaming_not_supported,
)
from shared.models.config import OutputModelConfig
from shared.models.exceptions import LimitExceeded

router = APIRouter(prefix="/v1", tags=["chat"])

DISCONNECT_POLL_INTERVAL = 1.0


def _find_model(request: Request, model: str) -> OutputModelConfig | None:
    return next((m for m in request.app.state.config.output_models if m.id == model), None)


def _model_object(model: OutputModelConfig) -> ModelObject:
    return ModelObject(id=model.id, owned_by=model.owned_by, created=int(time.time()))


async def _unless_disconnected(request: Request, work: Awaitable[Any]) -> Any:
    """Await the work, cancelling it if the client goes away first.

    Raises:
        asyncio.CancelledError: If the client disconnected.
    """
    task = asyncio.ensure_future(work)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_POLL_INTERVAL)
            if done:
                return task.result()
            if await request.is_disconnected():
                request.app.state.logging.info("Client disconnected, cancelling chat completion.")
                task.cancel()
                raise asyncio.CancelledError()
    finally:
        if not task.done():
            task.cancel()


##########################################
################# CHAT ###################
##########################################

@router.post("/chat/completions", response_model=None)
async def chat_completions(
    request: Request,
    permissions: list[WorkspacePermission] = Depends(verify_chat_access),
) -> ChatCompletionResponse | JSONResponse:
    """OpenAI compatible, non-streaming chat completion.

    Args:
        request (Request): FastAPI request (provides app.state.rag_service).
        permissions (list[WorkspacePermission]): Permissions of the caller, restricting retrieval.

    Returns:
        ChatCompletionResponse | JSONResponse: The completion, or an OpenAI shaped error.
    """
    logging = request.app.state.logging
    try:
        body = ChatCompletionRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        logging.debug("Invalid chat completion request: %s", e)
        return JSONResponse(status_code=400, content=missing_required_fields())

    output_model = _find_model(request, body.model)
    if output_model is None:
        logging.error("No model found with name %s", body.model)
        return JSONResponse(status_code=404, content=model_not_found(body.model))
    if body.stream:
        return JSONResponse(status_code=400, content=streaming_not_supported())
    if not any(message.role == "user" for message in body.messages):
        return JSONResponse(status_code=400, content=no_user_message())

    try:
        limits(body.messages, output_model)
    except LimitExceeded as e:
        logging.warning("Rejected chat completion for model '%s': %s", output_model.id, e)
        return JSONResponse(status_code=400, content=context_length_exceeded(str(e)))

    rag_service = request.app.state.rag_service
    result: RagResult = await _unless_disconnected(
        request, rag_service.perform(output_model, body.messages, permissions)
    )

    prompt_tokens = tokens(body.messages)
    completion_tokens = tokens([ChatMessage(role="assistant", content=result.response)])
    return ChatCompletionResponse(
        id=f"chatcmpl-{uuid.uuid4().hex}",
        created=int(time.time()),
        model=body.model,
        choices=[ChatCompletionChoice(message=ChatCompletionMessage(content=result.response))],
        usage=Usage(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


##########################################
################ MODELS ##################
##########################################

@router.get("/models")
async def list_models(
    request: Request,
    _: list[WorkspacePermission] = Depends(verify_chat_access),
) -> ModelList:
    return ModelList(data=[_model_object(m) for m in request.app.state.config.output_models])


@router.get("/models/{model}", response_model=None)
async def get_model(
    request: Request,
    model: str,
    _: list[WorkspacePermission] = Depends(verify_chat_access),
) -> ModelObject | JSONResponse:
    output_model = _find_model(request, model)
    if output_model is None:
        return JSONResponse(status_code=404, content=model_not_found(model))
    return _model_object(output_model)
