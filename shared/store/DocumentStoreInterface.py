from abc import ABC, abstractmethod
from datetime import datetime

from shared.helper.HelperConfig import HelperConfig
from shared.store.models.Document import Document


class DocumentStoreInterface(ABC):
    """Source of truth for documents. The vector index is derived from it."""

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config

    ##########################################
    ################ READS ###################
    ##########################################

    @abstractmethod
    async def list_documents(self) -> list[Document]:
        """
        Returns all documents.

        Returns:
            list[Document]: Every stored document, oldest first.
        """
        pass

    @abstractmethod
    async def list_modified_since(self, since: datetime) -> list[Document]:
        """
        Returns documents whose updated_at is strictly after the given timestamp.

        Args:
            since (datetime): Naive UTC watermark.

        Returns:
            list[Document]: The modified documents, oldest change first.
        """
        pass

    @abstractmethod
    async def find_by_ids(self, ids: list[str]) -> list[Document]:
        """
        Batch-fetches documents by id. Unknown ids are ignored.

        Args:
            ids (list[str]): Document ids.

        Returns:
            list[Document]: The documents that exist, in no particular order.
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        """
        Returns:
            int: The number of stored documents.
        """
        pass

    ##########################################
    ################ WRITES ##################
    ##########################################

    @abstractmethod
    async def add_document(self, title: str, content: str, category: str | None = None, metadata: dict | None = None, document_id: str | None = None) -> Document:
        """
        Stores a new document.

        Args:
            title (str): Document title.
            content (str): Document text.
            category (str | None): Optional category.
            metadata (dict | None): Optional opaque metadata.
            document_id (str | None): Explicit id; a UUID is generated when omitted.

        Returns:
            Document: The stored document.
        """
        pass

    @abstractmethod
    async def update_document(self, document_id: str, **changes) -> Document:
        """
        Updates fields of a document and bumps its updated_at.

        Args:
            document_id (str): ID of the document.
            **changes: Any of title, content, category, metadata.

        Returns:
            Document: The updated document.

        Raises:
            NotFound: If the document does not exist.
        """
        pass

    @abstractmethod
    async def delete_document(self, document_id: str) -> None:
        """
        Deletes a document. Its vector points are removed by the next full sync.

        Raises:
            NotFound: If the document does not exist.
        """
        pass

    @abstractmethod
    async def delete_all(self) -> int:
        """
        Deletes every document.

        Returns:
            int: The number of deleted documents.
        """
        pass
