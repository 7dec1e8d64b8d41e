"""
Request-scoped dependencies.

Process-wide resources live on ``app.state`` (set up in the lifespan); each
request gets its own session and services built around them.
"""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import Settings
from ..search_index import SearchIndex
from ..services import ArticleService, CatalogService, ProductService, ReindexService, UserService


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_search_index(request: Request) -> SearchIndex:
    return request.app.state.search_index


async def get_db(request: Request):
    async with request.app.state.session_factory() as session:
        yield session


def get_product_service(request: Request, db: AsyncSession = Depends(get_db)) -> ProductService:
    state = request.app.state
    return ProductService(db, state.search_index, state.sinks.products, state.coordinator, state.settings.PRODUCTS_INDEX)


def get_catalog_service(request: Request, db: AsyncSession = Depends(get_db)) -> CatalogService:
    state = request.app.state
    return CatalogService(db, state.search_index, state.sinks.products, state.coordinator, state.settings.PRODUCTS_INDEX)


def get_user_service(request: Request, db: AsyncSession = Depends(get_db)) -> UserService:
    state = request.app.state
    return UserService(db, state.search_index, state.sinks, state.coordinator, state.settings.USERS_INDEX)


def get_article_service(request: Request, db: AsyncSession = Depends(get_db)) -> ArticleService:
    state = request.app.state
    return ArticleService(db, state.search_index, state.sinks.articles, state.coordinator, state.settings.ARTICLES_INDEX)


def get_reindex_service(request: Request, db: AsyncSession = Depends(get_db)) -> ReindexService:
    state = request.app.state
    return ReindexService(db, state.search_index, state.settings)
