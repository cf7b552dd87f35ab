"""Document model: the source-of-truth record that gets indexed."""

from datetime import datetime

from pydantic import BaseModel


class Document(BaseModel):
    """A stored document.

    Attributes:
        id:         Stable opaque identifier (UUID string).
        title:      Document title, embedded together with the content.
        content:    Full document text.
        category:   Optional category, copied into the vector payload for filtered search.
        metadata:   Opaque key-value map, not indexed.
        created_at: Creation timestamp (UTC).
        updated_at: Last modification timestamp (UTC). The only change signal used by incremental sync.
    """

    id: str
    title: str
    content: str
    category: str | None = None
    metadata: dict = {}
    created_at: datetime
    updated_at: datetime
