# marketbase/models.py
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base


def _utcnow():
    return datetime.now(timezone.utc)


product_tags = Table(
    "product_tags",
    Base.metadata,
    Column("product_id", Integer, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True),
)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    articles = relationship("Article", back_populates="author", cascade="all, delete-orphan")


class Article(Base):
    __tablename__ = "articles"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    summary = Column(String(500), nullable=True)
    published = Column(Boolean, nullable=False, default=False)
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    author = relationship("User", back_populates="articles")


class Category(Base):
    __tablename__ = "categories"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)

    products = relationship("Product", back_populates="category")


class Brand(Base):
    __tablename__ = "brands"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)

    products = relationship("Product", back_populates="brand")


class Tag(Base):
    __tablename__ = "tags"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, unique=True)

    products = relationship("Product", secondary=product_tags, back_populates="tags")


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, index=True)
    sku = Column(String(255), nullable=False)
    sku_normalized = Column(String(255), nullable=False, unique=True, index=True)  # lower(sku)
    title = Column(String(1024), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Float, nullable=False)
    discount_percentage = Column(Float, nullable=False, default=0.0)
    rating = Column(Float, nullable=False, default=0.0)
    stock = Column(Integer, nullable=False, default=0)
    minimum_order_quantity = Column(Integer, nullable=False, default=1)
    weight = Column(Float, nullable=True)
    dimensions = Column(JSON, nullable=True)
    warranty_information = Column(String(255), nullable=True)
    shipping_information = Column(String(255), nullable=True)
    availability_status = Column(String(64), nullable=False, default="In Stock")
    return_policy = Column(String(255), nullable=True)
    barcode = Column(String(64), nullable=True)
    qr_code = Column(String(1024), nullable=True)
    images = Column(JSON, nullable=True)
    thumbnail = Column(String(1024), nullable=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    category = relationship("Category", back_populates="products")
    brand = relationship("Brand", back_populates="products")
    tags = relationship("Tag", secondary=product_tags, back_populates="products", order_by="Tag.name")
    reviews = relationship("Review", back_populates="product", cascade="all, delete-orphan")

    @property
    def tag_names(self):
        return [t.name for t in self.tags]

    @property
    def review_count(self):
        return len(self.reviews)


class Review(Base):
    __tablename__ = "reviews"
    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    reviewer_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="")
    date = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    product = relationship("Product", back_populates="reviews")
    reviewer = relationship("User")

    # dedup key used while seeding; not a unique constraint
    __table_args__ = (Index("ix_reviews_product_reviewer", "product_id", "reviewer_id"),)
