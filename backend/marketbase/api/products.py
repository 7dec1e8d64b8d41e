"""
Product API endpoints
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from ..log import get_logger
from ..schemas import ApiResponse, PageMeta, ProductCreate, ProductFilters, ProductOut, ProductUpdate
from ..services import ProductService
from ..utils import clean_values, page_window
from .deps import get_product_service

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def list_products(
    q: Optional[str] = None,
    brand: Optional[List[str]] = Query(None),
    category: Optional[List[str]] = Query(None),
    tags: Optional[List[str]] = Query(None),
    min_price: Optional[float] = Query(None, alias="minPrice"),
    max_price: Optional[float] = Query(None, alias="maxPrice"),
    min_rating: Optional[float] = Query(None, alias="minRating"),
    min_discount: Optional[float] = None,
    max_discount: Optional[float] = None,
    in_stock: bool = False,
    sort: Optional[str] = None,
    order: Optional[str] = None,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    service: ProductService = Depends(get_product_service),
):
    """
    Faceted product listing.

    Repeat ``brand``/``category``/``tags`` to OR several values of one facet;
    different facets are AND-ed.
    """
    page_no, page_size, offset = page_window(page, limit)
    filters = ProductFilters(
        query=q or None,
        brands=clean_values(brand),
        categories=clean_values(category),
        tags=clean_values(tags),
        min_price=min_price,
        max_price=max_price,
        min_rating=min_rating,
        min_discount=min_discount,
        max_discount=max_discount,
        in_stock=in_stock,
        sort=sort or None,
        order="asc" if order == "asc" else "desc",
        limit=page_size,
        offset=offset,
    )

    result = (await service.search(filters)).unwrap()
    return {
        "meta": PageMeta(page_no=page_no, page_size=page_size, total=result.total),
        "filters": {
            "brands": filters.brands,
            "categories": filters.categories,
            "tags": filters.tags,
        },
        "products": [doc.to_source() for doc in result.documents],
    }


@router.get("/category/{category_name}")
async def list_products_by_category(
    category_name: str,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    service: ProductService = Depends(get_product_service),
):
    page_no, page_size, offset = page_window(page, limit)
    items, total = await service.list_by_category(category_name, page_size, offset)
    return {
        "meta": PageMeta(page_no=page_no, page_size=page_size, total=total),
        "products": [ProductOut.model_validate(p) for p in items],
    }


@router.get("/{product_id}", response_model=ApiResponse[ProductOut])
async def get_product(product_id: int, service: ProductService = Depends(get_product_service)):
    return ApiResponse(data=ProductOut.model_validate(await service.get(product_id)))


@router.post("", status_code=201, response_model=ApiResponse[ProductOut])
async def create_product(payload: ProductCreate, service: ProductService = Depends(get_product_service)):
    product = await service.create(payload)
    logger.info("Created product %s (%s)", product.id, product.sku)
    return ApiResponse(data=ProductOut.model_validate(product), message="Product created successfully")


@router.put("/{product_id}", response_model=ApiResponse[ProductOut])
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    service: ProductService = Depends(get_product_service),
):
    product = await service.update(product_id, payload)
    return ApiResponse(data=ProductOut.model_validate(product), message="Product updated successfully")


@router.delete("/{product_id}", response_model=ApiResponse[None])
async def delete_product(product_id: int, service: ProductService = Depends(get_product_service)):
    await service.delete(product_id)
    return ApiResponse(message="Product deleted successfully")
