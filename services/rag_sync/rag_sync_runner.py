"""Sync runner entry point.

Mirrors the document store into the vector index for semantic search.
Run directly for a one-shot sync, e.g. from cron; the API server exposes
the same operations over HTTP.

Usage:
    python -m services.rag_sync.rag_sync_runner --mode full
    python -m services.rag_sync.rag_sync_runner --mode incremental
    python -m services.rag_sync.rag_sync_runner --status
    python -m services.rag_sync.rag_sync_runner --seed documents.json --mode full
"""

import argparse
import asyncio
import sys

from services.rag_sync.SyncService import SyncService
from services.seed.SeedService import SeedService, load_seed_file
from services.seed.models.SeedDocument import SeedResult
from shared.clients.ClientManager import ClientManager
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import ConfigurationError
from shared.logging.logging_setup import setup_logging
from shared.store.DocumentStoreInterface import DocumentStoreInterface
from shared.store.sql.DocumentStoreSql import DocumentStoreSql
from shared.store.sql.SyncLogStoreSql import SyncLogStoreSql
from shared.store.sql.database import DEFAULT_DATABASE_URL, create_db_engine, create_session_factory, init_db


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync the document store into the vector index.")
    parser.add_argument(
        "--mode",
        choices=["full", "incremental"],
        default="incremental",
        help="full re-ingests every document, incremental only those changed since the last successful run",
    )
    parser.add_argument("--status", action="store_true", help="print the sync status and exit")
    parser.add_argument("--seed", metavar="FILE", help="load documents from a JSON file into an empty document store before syncing")
    parser.add_argument("--force", action="store_true", help="with --seed, replace all stored documents")
    args = parser.parse_args(argv)
    if args.force and not args.seed:
        parser.error("--force requires --seed")
    return args


async def seed_store(config: HelperConfig, document_store: DocumentStoreInterface, seed_file: str, force: bool = False) -> SeedResult:
    """Load a seed file into the document store.

    Raises:
        ConfigurationError: If the seed file cannot be read.
    """
    documents = load_seed_file(seed_file)
    seed_service = SeedService(helper_config=config, document_store=document_store)
    if force:
        return await seed_service.force_seed(documents)
    return await seed_service.seed(documents)


async def main(argv: list[str] | None = None) -> int:
    """Run one synchronisation pass.

    Returns:
        int: Process exit code, 0 on success.
    """
    args = parse_args(argv)
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    embed_client: EmbedClientInterface = ClientManager(helper_config=config, client_type="embed").get_client()
    rag_client: RAGClientInterface = ClientManager(helper_config=config, client_type="rag").get_client()

    engine = create_db_engine(config.get_string_val("DATABASE_URL", default=DEFAULT_DATABASE_URL))
    init_db(engine)
    session_factory = create_session_factory(engine)
    document_store = DocumentStoreSql(helper_config=config, session_factory=session_factory)

    try:
        if args.seed:
            try:
                await seed_store(config, document_store, args.seed, force=args.force)
            except ConfigurationError as e:
                logger.error("Seeding failed: %s. Aborting.", e)
                return 1

        # embed client is required, syncing without embeddings is pointless
        try:
            await embed_client.boot()
            await embed_client.do_verify_model()
            await embed_client.do_verify_vector_size()
        except Exception as e:
            logger.error("Error booting Embed client %s: %s. Aborting.", embed_client.get_engine_name(), e)
            return 1

        try:
            await rag_client.boot()
            await rag_client.do_ensure_collection(vector_size=embed_client.vector_size, distance=embed_client.embed_distance)
        except Exception as e:
            logger.error("Error booting RAG client %s: %s. Aborting.", rag_client.get_engine_name(), e)
            return 1

        sync_service = SyncService(
            helper_config=config,
            document_store=document_store,
            sync_log_store=SyncLogStoreSql(helper_config=config, session_factory=session_factory),
            rag_client=rag_client,
            embed_client=embed_client,
        )

        if args.status:
            status = await sync_service.get_sync_status()
            print(status.model_dump_json(indent=2))
            return 0

        if args.mode == "full":
            result = await sync_service.full_sync()
        else:
            result = await sync_service.incremental_sync()
        print(result.model_dump_json(indent=2))
        return 0 if result.success else 1
    finally:
        await embed_client.close()
        await rag_client.close()
        engine.dispose()


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
