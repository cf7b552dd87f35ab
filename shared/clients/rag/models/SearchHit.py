from pydantic import BaseModel


class SearchHit(BaseModel):
    """A ranked similarity search result. Higher score means more similar."""

    id: str
    score: float
    payload: dict = {}


class ScrollResult(BaseModel):
    """One page of points from a filtered scroll, or all pages collected by do_scroll_all().

    next_page_offset is None once the last page has been read.
    """

    result: list[dict]
    status: str = "ok"
    time: float = 0
    next_page_offset: str | int | None = None


class CollectionInfo(BaseModel):
    """Introspection data of the vector collection.

    Attributes:
        points_count: Number of points stored in the collection.
        vector_size:  Configured vector dimension, if the backend reports one.
        distance:     Configured distance metric, if the backend reports one.
    """

    points_count: int = 0
    vector_size: int | None = None
    distance: str | None = None
