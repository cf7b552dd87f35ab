"""FastAPI application entry point for the rag sync bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import BackendUnavailable, ConfigurationError, NotFound
from shared.clients.ClientManager import ClientManager
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.store.sql.database import DEFAULT_DATABASE_URL, create_db_engine, create_session_factory, init_db
from shared.store.sql.DocumentStoreSql import DocumentStoreSql
from shared.store.sql.SyncLogStoreSql import SyncLogStoreSql
from services.rag_sync.SyncService import SyncService
from services.rag_query.RetrievalService import RetrievalService
from services.chat.ChatService import ChatService, RetrievalDisabled, RetrievalEnabled
from server.routers.SyncRouter import router as sync_router
from server.routers.QueryRouter import router as query_router
from server.routers.ChatRouter import router as chat_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = helper_config = HelperConfig(logger=logging)

    embed_client: EmbedClientInterface = ClientManager(helper_config=helper_config, client_type="embed").get_client()
    rag_client: RAGClientInterface = ClientManager(helper_config=helper_config, client_type="rag").get_client()
    llm_client: LLMClientInterface = ClientManager(helper_config=helper_config, client_type="llm").get_client()
    clients = [embed_client, rag_client, llm_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    db_engine = create_db_engine(helper_config.get_string_val("DATABASE_URL", default=DEFAULT_DATABASE_URL))
    init_db(db_engine)
    session_factory = create_session_factory(db_engine)
    document_store = DocumentStoreSql(helper_config=helper_config, session_factory=session_factory)
    sync_log_store = SyncLogStoreSql(helper_config=helper_config, session_factory=session_factory)

    try:
        await check_connections(embed_client, rag_client, llm_client)
        await rag_client.do_ensure_collection(vector_size=embed_client.vector_size, distance=embed_client.embed_distance)

        app.state.document_store = document_store
        app.state.sync_service = SyncService(
            helper_config=helper_config,
            document_store=document_store,
            sync_log_store=sync_log_store,
            rag_client=rag_client,
            embed_client=embed_client,
        )
        app.state.retrieval_service = RetrievalService(
            helper_config=helper_config,
            document_store=document_store,
            rag_client=rag_client,
            embed_client=embed_client,
        )
        if helper_config.get_bool_val("CHAT_RAG_ENABLED", default=True):
            retrieval_mode = RetrievalEnabled(retrieval_service=app.state.retrieval_service)
        else:
            retrieval_mode = RetrievalDisabled()
        app.state.chat_service = ChatService(
            helper_config=helper_config,
            llm_client=llm_client,
            retrieval_mode=retrieval_mode,
        )

        # while the app is running...
        yield
    finally:
        # when the app shuts down, close all client connections
        logging.info("Shutting down, closing all clients...")
        for client in clients:
            await client.close()
        db_engine.dispose()
        logging.info("All clients closed.")


app = FastAPI(
    title="rag_sync_bridge",
    description=(
        "Retrieval-augmented generation over a document store. "
        "Documents are chunked, embedded and indexed into a vector database via POST /rag/sync, "
        "searched via POST /rag/search and used as LLM context via POST /chat."
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

app.include_router(sync_router)
app.include_router(query_router)
app.include_router(chat_router)


@app.exception_handler(BackendUnavailable)
async def backend_unavailable_handler(request: Request, exc: BackendUnavailable) -> JSONResponse:
    logging.error("Backend unavailable while handling %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    logging.error("Configuration error while handling %s: %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


async def check_connections(
    embed_client: EmbedClientInterface,
    rag_client: RAGClientInterface,
    llm_client: LLMClientInterface,
) -> None:
    """Check connectivity to all configured backends on startup.

    The embedding model must be installed and produce vectors of the
    configured size. An unreachable LLM is non-fatal: search and sync still
    work, only chat requests will fail.

    Raises:
        BackendUnavailable: If the embedding or RAG backend is not reachable.
        ModelMissing: If the embedding model is not installed.
        ConfigurationError: If the embedding dimension does not match EMBED_VECTOR_SIZE.
    """
    await embed_client.do_verify_model()
    await embed_client.do_verify_vector_size()

    result: httpx.Response = await rag_client.do_healthcheck()
    if not result.is_success:
        raise BackendUnavailable(
            f"RAG client '{rag_client.get_engine_name()}' is not reachable "
            f"(status {result.status_code}). Cannot serve queries."
        )

    try:
        result = await llm_client.do_healthcheck()
        if not result.is_success:
            logging.warning(
                "LLM client '%s' is not reachable (status %d). Chat will fail.",
                llm_client.get_engine_name(),
                result.status_code,
            )
    except BackendUnavailable as e:
        logging.warning("LLM client '%s' is not reachable: %s. Chat will fail.", llm_client.get_engine_name(), e)


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting rag_sync_bridge API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
