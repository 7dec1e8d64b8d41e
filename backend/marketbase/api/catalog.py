"""
Category, brand and tag API endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from .. import models
from ..log import get_logger
from ..schemas import (
    ApiResponse,
    BrandOut,
    CategoryOut,
    PageMeta,
    ProductOut,
    Suggestion,
    SuggestResponse,
    TagIn,
    TagOut,
    TagWithCount,
)
from ..services import CatalogService
from ..utils import page_window
from .deps import get_catalog_service

logger = get_logger(__name__)

categories = APIRouter()
brands = APIRouter()
tags = APIRouter()


async def _suggest(service: CatalogService, facet: str, q: Optional[str], size: Optional[int]) -> SuggestResponse:
    buckets = (await service.suggest(facet, q, size)).unwrap()
    return SuggestResponse(query=q, suggestions=[Suggestion(text=b.key, count=b.count) for b in buckets])


def _register_named_routes(router: APIRouter, model, schema, facet: str, plural: str):
    """List/suggest/get/products endpoints shared by categories and brands."""

    @router.get("")
    async def list_items(
        page_no: Optional[int] = None,
        page_size: Optional[int] = None,
        service: CatalogService = Depends(get_catalog_service),
    ):
        page_no, size, offset = page_window(page_no, page_size, default_size=20)
        items, total = await service.list(model, size, offset)
        return {
            "meta": PageMeta(page_no=page_no, page_size=size, total=total),
            plural: [schema.model_validate(i) for i in items],
        }

    # declared before /{item_id} so "suggest" is not read as an id
    @router.get("/suggest", response_model=SuggestResponse)
    async def suggest(
        q: Optional[str] = None,
        size: Optional[int] = None,
        service: CatalogService = Depends(get_catalog_service),
    ):
        return await _suggest(service, facet, q, size)

    @router.get("/{item_id}", response_model=ApiResponse[schema])
    async def get_item(item_id: int, service: CatalogService = Depends(get_catalog_service)):
        return ApiResponse(data=schema.model_validate(await service.get(model, item_id)))

    @router.get("/{item_id}/products")
    async def list_item_products(
        item_id: int,
        page_no: Optional[int] = None,
        page_size: Optional[int] = None,
        service: CatalogService = Depends(get_catalog_service),
    ):
        page_no, size, offset = page_window(page_no, page_size, default_size=20)
        items, total = await service.products_of(model, item_id, size, offset)
        return {
            "meta": PageMeta(page_no=page_no, page_size=size, total=total),
            "products": [ProductOut.model_validate(p) for p in items],
        }


_register_named_routes(categories, models.Category, CategoryOut, "category", "categories")
_register_named_routes(brands, models.Brand, BrandOut, "brand", "brands")


# -------------------- TAGS --------------------
@tags.get("")
async def list_tags(
    with_count: bool = Query(False, alias="withCount"),
    service: CatalogService = Depends(get_catalog_service),
):
    if with_count:
        rows = await service.list_tags(with_count=True)
        data = [TagWithCount(id=tag.id, name=tag.name, product_count=count) for tag, count in rows]
    else:
        data = [TagOut.model_validate(t) for t in await service.list_tags()]
    return ApiResponse(data=data)


@tags.get("/suggest", response_model=SuggestResponse)
async def suggest_tags(
    q: Optional[str] = None,
    size: Optional[int] = None,
    service: CatalogService = Depends(get_catalog_service),
):
    return await _suggest(service, "tags", q, size)


@tags.get("/{tag_id}", response_model=ApiResponse[TagOut])
async def get_tag(tag_id: int, service: CatalogService = Depends(get_catalog_service)):
    return ApiResponse(data=TagOut.model_validate(await service.get(models.Tag, tag_id)))


@tags.post("", status_code=201, response_model=ApiResponse[TagOut])
async def create_tag(payload: TagIn, service: CatalogService = Depends(get_catalog_service)):
    tag = await service.create_tag(payload.name)
    return ApiResponse(data=TagOut.model_validate(tag), message="Tag created successfully")


@tags.put("/{tag_id}", response_model=ApiResponse[TagOut])
async def update_tag(tag_id: int, payload: TagIn, service: CatalogService = Depends(get_catalog_service)):
    tag = await service.update_tag(tag_id, payload.name)
    return ApiResponse(data=TagOut.model_validate(tag), message="Tag updated successfully")


@tags.delete("/{tag_id}", response_model=ApiResponse[None])
async def delete_tag(tag_id: int, service: CatalogService = Depends(get_catalog_service)):
    await service.delete_tag(tag_id)
    return ApiResponse(message="Tag deleted successfully")
