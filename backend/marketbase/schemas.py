# marketbase/schemas.py
from datetime import datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field, computed_field, field_validator

from .utils import discounted_price

T = TypeVar("T")


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# -------------------- ENVELOPES --------------------
class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None
    error: Optional[str] = None


class PageMeta(BaseModel):
    page_no: int
    page_size: int
    total: int


# -------------------- CATALOG --------------------
class CategoryOut(ORMModel):
    id: int
    name: str


class BrandOut(ORMModel):
    id: int
    name: str


class TagOut(ORMModel):
    id: int
    name: str


class TagWithCount(TagOut):
    product_count: int = 0


class TagIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Tag name is required and must be a non-empty string")
        return v


class Dimensions(BaseModel):
    width: float
    height: float
    depth: float


class ReviewerOut(ORMModel):
    id: int
    email: str
    name: str


class ReviewOut(ORMModel):
    id: int
    rating: int
    comment: str
    date: datetime
    reviewer: Optional[ReviewerOut] = None


class ProductBase(BaseModel):
    sku: str = Field(..., min_length=1, max_length=255)
    title: str = Field(..., min_length=1, max_length=1024)
    description: str = ""
    price: float = Field(..., ge=0)
    discount_percentage: float = Field(0.0, ge=0, le=100)
    stock: int = Field(0, ge=0)
    minimum_order_quantity: int = Field(1, ge=1)
    weight: Optional[float] = None
    dimensions: Optional[Dimensions] = None
    warranty_information: Optional[str] = None
    shipping_information: Optional[str] = None
    availability_status: str = "In Stock"
    return_policy: Optional[str] = None
    barcode: Optional[str] = None
    qr_code: Optional[str] = None
    images: Optional[List[str]] = None
    thumbnail: Optional[str] = None


class ProductCreate(ProductBase):
    category_id: int
    brand_id: int
    rating: float = Field(0.0, ge=0, le=5)
    tags: List[str] = []


class ProductUpdate(BaseModel):
    category_id: Optional[int] = None
    brand_id: Optional[int] = None
    sku: Optional[str] = Field(None, min_length=1, max_length=255)
    title: Optional[str] = Field(None, min_length=1, max_length=1024)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    discount_percentage: Optional[float] = Field(None, ge=0, le=100)
    rating: Optional[float] = Field(None, ge=0, le=5)
    stock: Optional[int] = Field(None, ge=0)
    minimum_order_quantity: Optional[int] = Field(None, ge=1)
    weight: Optional[float] = None
    dimensions: Optional[Dimensions] = None
    warranty_information: Optional[str] = None
    shipping_information: Optional[str] = None
    availability_status: Optional[str] = None
    return_policy: Optional[str] = None
    barcode: Optional[str] = None
    qr_code: Optional[str] = None
    images: Optional[List[str]] = None
    thumbnail: Optional[str] = None
    tags: Optional[List[str]] = None


class ProductOut(ProductBase, ORMModel):
    id: int
    category_id: int
    brand_id: int
    rating: float
    category: Optional[CategoryOut] = None
    brand: Optional[BrandOut] = None
    tags: List[str] = Field(default_factory=list, validation_alias=AliasChoices("tag_names", "tags"))
    reviews: List[ReviewOut] = []
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def discounted_price(self) -> float:
        return discounted_price(self.price, self.discount_percentage)


class ProductFilters(BaseModel):
    """Structured input of the faceted product search."""

    query: Optional[str] = None
    brands: List[str] = []
    categories: List[str] = []
    tags: List[str] = []
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_rating: Optional[float] = None
    min_discount: Optional[float] = None
    max_discount: Optional[float] = None
    in_stock: bool = False
    sort: Optional[str] = None
    order: Literal["asc", "desc"] = "desc"
    limit: int = 10
    offset: int = 0


class Suggestion(BaseModel):
    text: str
    count: int


class SuggestResponse(BaseModel):
    query: str
    suggestions: List[Suggestion]


# -------------------- CONTENT --------------------
class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=100)


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)


class UserOut(ORMModel):
    id: int
    email: str
    name: str
    created_at: datetime
    updated_at: datetime


class ArticleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    summary: Optional[str] = Field(None, max_length=500)
    published: bool = False
    author_id: int


class ArticleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    summary: Optional[str] = Field(None, max_length=500)
    published: Optional[bool] = None


class ArticleOut(ORMModel):
    id: int
    title: str
    content: str
    summary: Optional[str] = None
    published: bool
    author_id: int
    author: Optional[UserOut] = None
    created_at: datetime
    updated_at: datetime


class ReindexReport(BaseModel):
    index: str
    indexed: int = 0
    failed: int = 0
    batches: int = 0
    failures: List[Dict[str, Any]] = []
