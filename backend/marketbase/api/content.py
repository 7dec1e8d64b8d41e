"""
User, article and search API endpoints
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from ..errors import ValidationError
from ..log import get_logger
from ..schemas import ApiResponse, ArticleCreate, ArticleOut, ArticleUpdate, UserCreate, UserOut, UserUpdate
from ..services import ArticleService, UserService
from ..utils import MAX_PAGE_SIZE
from .deps import get_article_service, get_user_service

logger = get_logger(__name__)

users = APIRouter()
articles = APIRouter()
search = APIRouter()


def _page_args(page: Optional[int], limit: Optional[int]):
    return max(1, page or 1), min(MAX_PAGE_SIZE, max(1, limit or 10))


# -------------------- USERS --------------------
@users.get("")
async def list_users(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    service: UserService = Depends(get_user_service),
):
    page, limit = _page_args(page, limit)
    items, total = await service.list(page, limit)
    return ApiResponse(
        data={
            "users": [UserOut.model_validate(u) for u in items],
            "total": total,
            "page": page,
            "limit": limit,
        }
    )


@users.get("/{user_id}", response_model=ApiResponse[UserOut])
async def get_user(user_id: int, service: UserService = Depends(get_user_service)):
    return ApiResponse(data=UserOut.model_validate(await service.get(user_id)))


@users.post("", status_code=201, response_model=ApiResponse[UserOut])
async def create_user(payload: UserCreate, service: UserService = Depends(get_user_service)):
    user = await service.create(payload)
    return ApiResponse(data=UserOut.model_validate(user), message="User created successfully")


@users.put("/{user_id}", response_model=ApiResponse[UserOut])
async def update_user(user_id: int, payload: UserUpdate, service: UserService = Depends(get_user_service)):
    user = await service.update(user_id, payload)
    return ApiResponse(data=UserOut.model_validate(user), message="User updated successfully")


@users.delete("/{user_id}", response_model=ApiResponse[None])
async def delete_user(user_id: int, service: UserService = Depends(get_user_service)):
    await service.delete(user_id)
    return ApiResponse(message="User deleted successfully")


# -------------------- ARTICLES --------------------
@articles.get("")
async def list_articles(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    published: bool = False,
    service: ArticleService = Depends(get_article_service),
):
    page, limit = _page_args(page, limit)
    items, total = await service.list(page, limit, published_only=published)
    return ApiResponse(
        data={
            "articles": [ArticleOut.model_validate(a) for a in items],
            "total": total,
            "page": page,
            "limit": limit,
        }
    )


@articles.get("/author/{author_id}")
async def list_articles_by_author(
    author_id: int,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    service: ArticleService = Depends(get_article_service),
):
    page, limit = _page_args(page, limit)
    items, total = await service.list_by_author(author_id, page, limit)
    return ApiResponse(
        data={
            "articles": [ArticleOut.model_validate(a) for a in items],
            "total": total,
            "page": page,
            "limit": limit,
        }
    )


@articles.get("/{article_id}", response_model=ApiResponse[ArticleOut])
async def get_article(article_id: int, service: ArticleService = Depends(get_article_service)):
    return ApiResponse(data=ArticleOut.model_validate(await service.get(article_id)))


@articles.post("", status_code=201, response_model=ApiResponse[ArticleOut])
async def create_article(payload: ArticleCreate, service: ArticleService = Depends(get_article_service)):
    article = await service.create(payload)
    return ApiResponse(data=ArticleOut.model_validate(article), message="Article created successfully")


@articles.put("/{article_id}", response_model=ApiResponse[ArticleOut])
async def update_article(
    article_id: int,
    payload: ArticleUpdate,
    service: ArticleService = Depends(get_article_service),
):
    article = await service.update(article_id, payload)
    return ApiResponse(data=ArticleOut.model_validate(article), message="Article updated successfully")


@articles.delete("/{article_id}", response_model=ApiResponse[None])
async def delete_article(article_id: int, service: ArticleService = Depends(get_article_service)):
    await service.delete(article_id)
    return ApiResponse(message="Article deleted successfully")


# -------------------- SEARCH --------------------
def _page_of(result, limit: int, offset: int):
    return {
        "data": [doc.model_dump(mode="json", by_alias=True, exclude_none=True) for doc in result.documents],
        "total": result.total,
        "limit": limit,
        "offset": offset,
    }


@search.get("")
async def search_content(
    q: Optional[str] = None,
    type: Optional[Literal["users", "articles"]] = Query(None),
    limit: Optional[int] = None,
    offset: Optional[int] = None,
    user_service: UserService = Depends(get_user_service),
    article_service: ArticleService = Depends(get_article_service),
):
    """Search users, articles, or both (the limit is split between the two)."""
    if not q or not q.strip():
        raise ValidationError("Search query is required")
    _, limit = _page_args(None, limit)
    offset = max(offset or 0, 0)

    if type == "users":
        data = _page_of((await user_service.search(q, limit, offset)).unwrap(), limit, offset)
    elif type == "articles":
        data = _page_of((await article_service.search(q, limit, offset)).unwrap(), limit, offset)
    else:
        # both services share this request's session, so the searches run one after the other
        user_limit, article_limit = limit // 2, limit - limit // 2
        user_result = (await user_service.search(q, user_limit, offset)).unwrap()
        article_result = (await article_service.search(q, article_limit, offset)).unwrap()
        data = {
            "users": _page_of(user_result, user_limit, offset),
            "articles": _page_of(article_result, article_limit, offset),
            "query": q,
            "limit": limit,
            "offset": offset,
        }
    return ApiResponse(data=data)
