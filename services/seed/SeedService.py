"""Seeding of the document store from a JSON file.

The file holds a list of documents:

    [
        {"title": "About", "content": "...", "category": "about", "metadata": {"section": "hero"}},
        {"id": "faq-1", "title": "FAQ", "content": "..."}
    ]
"""

import json
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from services.seed.models.SeedDocument import SeedDocument, SeedResult
from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import ConfigurationError
from shared.store.DocumentStoreInterface import DocumentStoreInterface

_SEED_FILE_ADAPTER = TypeAdapter(list[SeedDocument])


def load_seed_file(path: str | Path) -> list[SeedDocument]:
    """Read and validate a seed file.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or not a list of documents.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigurationError(f"Seed file '{path}' does not exist.")
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Seed file '{path}' is not valid JSON: {e}")
    try:
        return _SEED_FILE_ADAPTER.validate_python(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Seed file '{path}' is not a list of documents: {e}")


class SeedService:
    """Fills the document store with initial documents."""

    def __init__(self, helper_config: HelperConfig, document_store: DocumentStoreInterface) -> None:
        self.logging = helper_config.get_logger()
        self._document_store = document_store

    async def seed(self, documents: list[SeedDocument]) -> SeedResult:
        """Insert the documents into an empty store. A non-empty store is left untouched."""
        existing = await self._document_store.count()
        if existing > 0:
            self.logging.info("Document store already has %d documents, skipping seed.", existing)
            return SeedResult(skipped=True)

        created = await self._insert(documents)
        self.logging.info("Seeded %d documents.", created, color="green")
        return SeedResult(created=created)

    async def force_seed(self, documents: list[SeedDocument]) -> SeedResult:
        """Delete every stored document, then insert the seed documents.

        Points of the deleted documents are removed by the next full sync.
        """
        deleted = await self._document_store.delete_all()
        created = await self._insert(documents)
        self.logging.info("Force seeded: deleted %d, created %d documents.", deleted, created, color="green")
        return SeedResult(deleted=deleted, created=created)

    async def _insert(self, documents: list[SeedDocument]) -> int:
        for doc in documents:
            await self._document_store.add_document(
                title=doc.title,
                content=doc.content,
                category=doc.category,
                metadata=doc.metadata,
                document_id=doc.id,
            )
        return len(documents)
