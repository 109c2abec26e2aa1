"""FastAPI application entry point for the note vector sync service."""

import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.vault.NoteVault import NoteVault
from services.note_rag_sync.SyncService import SyncService
from server.routers.WebhookRouter import router as webhook_router
from server.routers.SyncRouter import router as sync_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    rag_client = RAGClientManager(helper_config=app.state.helper_config).get_client()
    embed_client = EmbedClientManager(helper_config=app.state.helper_config).get_client()
    vault = NoteVault(helper_config=app.state.helper_config)

    logging.info("Booting all clients...")
    for client in [rag_client, embed_client]:
        await client.boot()

    await check_connections(rag_client, embed_client)

    vector_size, distance = embed_client.get_vector_config()
    await rag_client.do_ensure_collection(vector_size=vector_size, distance=distance)
    await asyncio.to_thread(vault.warm_cache)

    app.state.sync_service = SyncService(
        helper_config=app.state.helper_config,
        vault=vault,
        rag_client=rag_client,
        embed_client=embed_client,
    )
    logging.info("Note sync API ready.", color="green")

    # while the app is running...
    yield

    # flush what is still queued, then close all client connections
    logging.info("Shutting down, flushing queue and closing all clients...")
    await app.state.sync_service.shutdown()
    for client in [rag_client, embed_client]:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="note_qdrant_sync",
    description=(
        "Keeps a Qdrant collection in sync with a vault of markdown notes. "
        "Change events arrive via POST /webhook/note and are embedded in debounced batches; "
        "manual commands live under /sync."
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

app.include_router(webhook_router)
app.include_router(sync_router)


async def check_connections(rag_client: RAGClientInterface, embed_client: EmbedClientInterface) -> None:
    """Check connectivity to both backends on startup.

    Raises:
        Exception: If either backend is not reachable. Nothing can be synced without them.
    """
    for client in [rag_client, embed_client]:
        result: httpx.Response = await client.do_healthcheck()
        if not result.is_success:
            raise Exception(
                f"{client.get_client_type().upper()} client '{client.get_engine_name()}' is not reachable "
                f"(status {result.status_code})."
            )


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting note sync API Server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
