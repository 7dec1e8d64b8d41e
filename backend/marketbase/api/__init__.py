from fastapi import APIRouter

from . import admin, catalog, content, health, products

api_router = APIRouter()
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(products.router, prefix="/products", tags=["products"])
api_router.include_router(catalog.categories, prefix="/categories", tags=["categories"])
api_router.include_router(catalog.brands, prefix="/brands", tags=["brands"])
api_router.include_router(catalog.tags, prefix="/tags", tags=["tags"])
api_router.include_router(content.users, prefix="/users", tags=["users"])
api_router.include_router(content.articles, prefix="/articles", tags=["articles"])
api_router.include_router(content.search, prefix="/search", tags=["search"])
api_router.include_router(admin.router, prefix="/admin", tags=["admin"])
