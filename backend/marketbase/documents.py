"""
Typed shapes of what lives in (and comes back from) the search index.

Each entity type has its own document model; field aliases are the exact
field names of the index mapping, so ``to_source()`` is what gets indexed and
``from_source()`` reads a hit back.
"""

from datetime import datetime
from typing import Any, ClassVar, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class IndexDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: ClassVar[str] = "document"

    @property
    def doc_id(self) -> str:
        return str(self.id)

    def to_source(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_source(cls, source: Dict[str, Any]):
        return cls.model_validate(source)


class ProductDocument(IndexDocument):
    kind: ClassVar[str] = "product"

    id: int
    title: str
    description: str = ""
    category: str = ""
    brand: str = ""
    tags: List[str] = []
    price: float
    stock: int = 0
    rating: float = 0.0
    discount_percentage: float = Field(0.0, alias="discountPercentage")
    availability_status: Optional[str] = Field(None, alias="availabilityStatus")
    review_count: int = 0
    thumbnail: Optional[str] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class UserDocument(IndexDocument):
    kind: ClassVar[str] = "user"

    id: int
    email: str
    name: str
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")


class ArticleDocument(IndexDocument):
    kind: ClassVar[str] = "article"

    id: int
    title: str
    content: str
    summary: Optional[str] = None
    published: bool = False
    author_id: int = Field(..., alias="authorId")
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")
    # only present on search hits
    highlight: Optional[Dict[str, List[str]]] = None

    def to_source(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"highlight"})


class AggregationBucket(BaseModel):
    key: str
    count: int


class SearchHit(BaseModel):
    id: str
    score: Optional[float] = None
    source: Dict[str, Any] = {}
    highlight: Optional[Dict[str, List[str]]] = None


class SearchResponse(BaseModel):
    """Normalized body of an index search call."""

    total: int = 0
    hits: List[SearchHit] = []
    aggregations: Dict[str, List[AggregationBucket]] = {}


class BulkResult(BaseModel):
    succeeded: int = 0
    failures: List[Dict[str, Any]] = []

    @property
    def errors(self) -> bool:
        return bool(self.failures)


D = TypeVar("D", bound=IndexDocument)


class SearchResult(BaseModel, Generic[D]):
    """A page of documents plus the total match count."""

    total: int = 0
    documents: List[D] = []
