from pydantic import BaseModel, Field


class SeedDocument(BaseModel):
    """One entry of a seed file. id is generated when omitted."""

    id: str | None = None
    title: str = Field(min_length=1)
    content: str
    category: str | None = None
    metadata: dict = {}


class SeedResult(BaseModel):
    deleted: int = 0
    created: int = 0
    skipped: bool = False
