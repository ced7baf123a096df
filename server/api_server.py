"""FastAPI application entry point of the sufle API server."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from server.core.RagService import RagService
from server.core.tools.ToolManager import ToolManager
from server.db.models import Base
from server.routers.ChatRouter import router as chat_router
from server.routers.DocumentRouter import router as document_router
from server.stores.VectorStoreManager import VectorStoreManager
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.db.Database import Database
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.models.config import ApiConfig

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    helper_config = HelperConfig(logger=logging)
    config = helper_config.parse(helper_config.get_config_path(), ApiConfig)

    database = Database(helper_config=helper_config, metadata=Base.metadata, load_vector_extension=True)
    database.boot()

    embed_client = EmbedClientManager(helper_config=helper_config, config=config.rag.embeddings).get_client()
    llm_manager = LLMClientManager(helper_config=helper_config, output_models=config.output_models)
    tool_manager = ToolManager(helper_config=helper_config, config=config)
    store_manager = VectorStoreManager(
        helper_config=helper_config,
        config=config.rag,
        database=database,
        embed_client=embed_client,
    )
    clients: list[ClientInterface] = [embed_client, *llm_manager.get_clients(), *tool_manager.get_clients()]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    app.state.logging = logging
    app.state.helper_config = helper_config
    app.state.config = config
    app.state.database = database
    app.state.rag_service = RagService(
        helper_config=helper_config,
        llm_manager=llm_manager,
        store_manager=store_manager,
        tool_manager=tool_manager,
    )

    # binds the vector store and fails early if sqlite-vec is unavailable
    store_manager.get_store()
    await check_connections(clients)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients:
        await client.close()
    database.close()
    logging.info("All clients closed.")


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Answer malformed headers, query parameters and bodies with 400 and the violated fields."""
    details = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})


async def check_connections(clients: list[ClientInterface]) -> None:
    """Check connectivity to all configured providers on startup.

    Failures are logged but not fatal. Affected requests are answered with
    an apology until the provider is reachable.
    """
    for client in clients:
        try:
            result: httpx.Response = await client.do_healthcheck()
        except httpx.HTTPError as e:
            logging.warning("%s client '%s' is not reachable: %s", client.get_client_type(), client.get_engine_name(), e)
            continue
        if result.status_code >= 500:
            logging.warning(
                "%s client '%s' is not healthy (status %d).",
                client.get_client_type(),
                client.get_engine_name(),
                result.status_code,
            )


def create_app() -> FastAPI:
    app = FastAPI(
        title="sufle",
        description=(
            "OpenAI compatible chat completions answered from a document knowledge base. "
            "Documents are indexed by the sufle indexer through the /document(s) endpoints."
        ),
        version=app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.get("/")
    async def root() -> dict:
        return {"server": "running"}

    app.include_router(chat_router)
    app.include_router(document_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "8000"))
    logging.info("Starting sufle API Server v%s on port %d...", app_version, port)
    uvicorn.run(app, host="0.0.0.0", port=port)
