import asyncio
from datetime import datetime

from sqlalchemy.orm import sessionmaker

from shared.helper.HelperConfig import HelperConfig
from shared.helper.errors import NotFound
from shared.store.DocumentStoreInterface import DocumentStoreInterface
from shared.store.models.Document import Document
from shared.store.sql.database import utcnow
from shared.store.sql.tables import DocumentRecord

_UPDATABLE_FIELDS = ("title", "content", "category", "metadata")


def _to_document(record: DocumentRecord) -> Document:
    return Document(
        id=record.id,
        title=record.title,
        content=record.content,
        category=record.category,
        metadata=record.metadata_ or {},
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class DocumentStoreSql(DocumentStoreInterface):
    """SQLAlchemy document store. Blocking session work runs in a worker thread."""

    def __init__(self, helper_config: HelperConfig, session_factory: sessionmaker):
        super().__init__(helper_config=helper_config)
        self._session_factory = session_factory

    ##########################################
    ################ READS ###################
    ##########################################

    async def list_documents(self) -> list[Document]:
        return await asyncio.to_thread(self._list_documents)

    async def list_modified_since(self, since: datetime) -> list[Document]:
        return await asyncio.to_thread(self._list_modified_since, since)

    async def find_by_ids(self, ids: list[str]) -> list[Document]:
        if not ids:
            return []
        return await asyncio.to_thread(self._find_by_ids, list(ids))

    async def count(self) -> int:
        return await asyncio.to_thread(self._count)

    def _list_documents(self) -> list[Document]:
        with self._session_factory() as session:
            records = session.query(DocumentRecord).order_by(DocumentRecord.created_at, DocumentRecord.id).all()
            return [_to_document(r) for r in records]

    def _list_modified_since(self, since: datetime) -> list[Document]:
        with self._session_factory() as session:
            records = (
                session.query(DocumentRecord)
                .filter(DocumentRecord.updated_at > since)
                .order_by(DocumentRecord.updated_at, DocumentRecord.id)
                .all()
            )
            return [_to_document(r) for r in records]

    def _find_by_ids(self, ids: list[str]) -> list[Document]:
        with self._session_factory() as session:
            records = session.query(DocumentRecord).filter(DocumentRecord.id.in_(ids)).all()
            return [_to_document(r) for r in records]

    def _count(self) -> int:
        with self._session_factory() as session:
            return session.query(DocumentRecord).count()

    ##########################################
    ################ WRITES ##################
    ##########################################

    async def add_document(self, title: str, content: str, category: str | None = None, metadata: dict | None = None, document_id: str | None = None) -> Document:
        return await asyncio.to_thread(self._add_document, title, content, category, metadata, document_id)

    async def update_document(self, document_id: str, **changes) -> Document:
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update document fields: {sorted(unknown)}")
        return await asyncio.to_thread(self._update_document, document_id, changes)

    async def delete_document(self, document_id: str) -> None:
        await asyncio.to_thread(self._delete_document, document_id)

    def _add_document(self, title: str, content: str, category: str | None, metadata: dict | None, document_id: str | None) -> Document:
        now = utcnow()
        record = DocumentRecord(
            title=title,
            content=content,
            category=category,
            metadata_=metadata or {},
            created_at=now,
            updated_at=now,
        )
        if document_id:
            record.id = document_id
        with self._session_factory() as session:
            session.add(record)
            session.commit()
            self.logging.debug("Stored document %s ('%s')", record.id, title[:60])
            return _to_document(record)

    def _update_document(self, document_id: str, changes: dict) -> Document:
        with self._session_factory() as session:
            record = session.get(DocumentRecord, document_id)
            if record is None:
                raise NotFound(f"Document '{document_id}' does not exist.")
            for field, value in changes.items():
                setattr(record, "metadata_" if field == "metadata" else field, value)
            record.updated_at = utcnow()
            session.commit()
            return _to_document(record)

    def _delete_document(self, document_id: str) -> None:
        with self._session_factory() as session:
            record = session.get(DocumentRecord, document_id)
            if record is None:
                raise NotFound(f"Document '{document_id}' does not exist.")
            session.delete(record)
            session.commit()

    async def delete_all(self) -> int:
        return await asyncio.to_thread(self._delete_all)

    def _delete_all(self) -> int:
        with self._session_factory() as session:
            deleted = session.query(DocumentRecord).delete()
            session.commit()
            return deleted
