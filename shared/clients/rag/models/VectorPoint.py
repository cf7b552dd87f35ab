"""VectorPoint model: a vector plus the metadata stored alongside it in the RAG backend."""

from pydantic import BaseModel


class VectorPayload(BaseModel):
    """Metadata stored alongside each vector.

    Attributes:
        document_id: ID of the source document in the document store. Every point
                     must reference an existing document.
        title:       Document title at sync time.
        category:    Document category, used for equality-filtered search.
        chunk_index: Zero-based chunk position; 0 for unchunked documents.
        chunk_text:  The embedded text (chunk text, or title + content when unchunked).
        is_chunk:    True if the document was split into several points.
    """

    document_id: str
    title: str
    category: str | None = None
    chunk_index: int = 0
    chunk_text: str | None = None
    is_chunk: bool = False


class VectorPoint(BaseModel):
    """A single point to upsert.

    The id is the document id for unchunked documents and
    "{document_id}_chunk_{index}" for chunks. RAG engines that restrict id
    formats map it to a backend id at the wire boundary.
    """

    id: str
    vector: list[float]
    payload: VectorPayload


def make_point_id(document_id: str, chunk_index: int | None = None) -> str:
    """Build the logical point id of a document or one of its chunks.

    Args:
        document_id (str): ID of the source document.
        chunk_index (int | None): Chunk index, or None for an unchunked document.

    Returns:
        str: The point id.
    """
    if chunk_index is None:
        return document_id
    return f"{document_id}_chunk_{chunk_index}"
