"""Web chat front end.

Serves the chat page and proxies the browser's requests to the sufle API
server, so the API key never reaches the browser.
"""

import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates

from shared.helper.HelperConfig import HelperConfig, keys_to_camel_case
from shared.logging.logging_setup import setup_logging
from shared.models.config import WebConfig

logging = setup_logging("sufle-web")
app_version = os.getenv("APP_VERSION", "unknown")

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))

VALID_ROLES = {"system", "user", "assistant"}
MAX_MESSAGES = 64
MAX_CONTENT_LENGTH = 20000
MAX_MODEL_LENGTH = 128


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    helper_config = HelperConfig(logger=logging)
    app.state.logging = logging
    app.state.config = helper_config.parse(helper_config.get_config_path(), WebConfig)
    app.state.http = httpx.AsyncClient(timeout=helper_config.get_number_val("WEB_TIMEOUT", default=120.0))

    yield

    await app.state.http.aclose()


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _is_configured(config: WebConfig) -> bool:
    return bool(config.api.base_url and config.api.api_key.strip())


def _upstream_headers(config: WebConfig) -> dict:
    return {"Content-Type": "application/json", "Authorization": f"Bearer {config.api.api_key}"}


def validate_chat_body(body: object, default_model: str) -> tuple[dict | None, str | None]:
    """
    Validate a chat request from the browser.

    Returns:
        tuple[dict | None, str | None]: The upstream request body, or an error message.
    """
    if not isinstance(body, dict):
        return None, "Invalid request body"
    messages = body.get("messages")
    if not isinstance(messages, list):
        return None, "messages must be an array"
    if not messages:
        return None, "messages must not be empty"
    if len(messages) > MAX_MESSAGES:
        return None, "Too many messages"

    sanitized = []
    for i, message in enumerate(messages):
        if not isinstance(message, dict):
            return None, f"Invalid message at index {i}"
        role = message.get("role")
        content = message.get("content")
        if not isinstance(role, str) or role not in VALID_ROLES:
            return None, f"Invalid role at index {i}"
        if not isinstance(content, str):
            return None, f"Invalid content at index {i}"
        trimmed = content.strip()
        if not trimmed:
            return None, f"Empty content at index {i}"
        if len(trimmed) > MAX_CONTENT_LENGTH:
            return None, f"Content too long at index {i}"
        sanitized.append({"role": role, "content": trimmed})

    model = body.get("model") if isinstance(body.get("model"), str) else default_model
    if not model or len(model) > MAX_MODEL_LENGTH:
        return None, "Invalid model"

    # the API server does not stream
    return {"model": model, "messages": sanitized, "stream": False}, None


def create_app() -> FastAPI:
    app = FastAPI(title="sufle-web", version=app_version, lifespan=lifespan)
    app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request):
        config: WebConfig = request.app.state.config
        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "title": config.ui.title,
                "ui_config": keys_to_camel_case({**config.ui.model_dump(), "model": config.api.model}),
            },
        )

    @app.post("/api/chat")
    async def chat(request: Request):
        config: WebConfig = request.app.state.config
        if not _is_configured(config):
            return _error("Server is not configured.", 500)

        try:
            body = await request.json()
        except ValueError:
            return _error("Invalid JSON body", 400)

        upstream_body, error = validate_chat_body(body, config.api.model)
        if error is not None:
            return _error(error, 400)

        try:
            upstream = await request.app.state.http.post(
                f"{config.api.base_url.rstrip('/')}/chat/completions",
                json=upstream_body,
                headers=_upstream_headers(config),
            )
        except httpx.HTTPError as e:
            request.app.state.logging.error("Upstream error: %s", e)
            return _error("Upstream error", 502)
        if not upstream.is_success:
            # the upstream body stays in the server log
            request.app.state.logging.error("Upstream error: %d %s", upstream.status_code, upstream.text[:500])
            return _error("Upstream error", upstream.status_code)
        try:
            return JSONResponse(content=upstream.json())
        except ValueError:
            request.app.state.logging.error("Upstream returned invalid JSON: %s", upstream.text[:500])
            return _error("Upstream error", 502)

    @app.get("/api/models")
    async def models(request: Request):
        config: WebConfig = request.app.state.config
        if not _is_configured(config):
            return _error("Server is not configured.", 500)

        try:
            upstream = await request.app.state.http.get(
                f"{config.api.base_url.rstrip('/')}/models",
                headers=_upstream_headers(config),
            )
        except httpx.HTTPError as e:
            request.app.state.logging.error("Failed to fetch models: %s", e)
            return _error("Failed to fetch models", 500)
        if not upstream.is_success:
            request.app.state.logging.error("Failed to fetch models: %d %s", upstream.status_code, upstream.text[:500])
            return _error("Failed to fetch models", upstream.status_code)
        try:
            return JSONResponse(content=upstream.json())
        except ValueError:
            request.app.state.logging.error("Failed to fetch models: invalid JSON %s", upstream.text[:500])
            return _error("Failed to fetch models", 502)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "3000"))
    logging.info("Starting sufle web v%s on port %d...", app_version, port)
    uvicorn.run(app, host="0.0.0.0", port=port)
