"""One-shot reindex entry point.

Embeds every note of the vault into the RAG backend and exits. The
long-running, event-driven sync lives in server.api_server.

Usage:
    python -m services.note_rag_sync.note_rag_sync
"""

import asyncio

from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from services.note_rag_sync.SyncService import SyncService
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from shared.vault.NoteVault import NoteVault


async def main() -> int:
    """Run a full reindex of the vault.

    Returns:
        int: Process exit code, 0 on success.
    """
    logger = setup_logging()
    config = HelperConfig(logger=logger)
    rag_client = RAGClientManager(helper_config=config).get_client()
    embed_client = EmbedClientManager(helper_config=config).get_client()
    vault = NoteVault(helper_config=config)

    try:
        # both backends are required, without either there is nothing to sync
        for client in [embed_client, rag_client]:
            try:
                await client.boot()
                response = await client.do_healthcheck()
                response.raise_for_status()
            except Exception as e:
                logger.error(f"Error booting {client.get_client_type().upper()} client {client.get_engine_name()}: {e}. Aborting.")
                return 1

        vector_size, distance = embed_client.get_vector_config()
        await rag_client.do_ensure_collection(vector_size=vector_size, distance=distance)

        sync_service = SyncService(
            helper_config=config,
            vault=vault,
            rag_client=rag_client,
            embed_client=embed_client,
        )
        await sync_service.do_reindex_vault()
        if sync_service.last_error:
            logger.error("Reindex finished with errors: %s", sync_service.last_error)
            return 1
        return 0
    finally:
        await embed_client.close()
        await rag_client.close()

if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
