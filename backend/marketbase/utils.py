from typing import List, Optional, Tuple

MAX_PAGE_SIZE = 100
MAX_SUGGESTIONS = 50
MIN_SUGGEST_QUERY_LENGTH = 3


def discounted_price(price: float, discount_percentage: Optional[float]) -> float:
    return round(price * (1 - (discount_percentage or 0) / 100), 2)


def page_window(page: Optional[int], page_size: Optional[int], default_size: int = 10) -> Tuple[int, int, int]:
    """Clamp page/page_size the way listing endpoints expect; returns (page, size, offset)."""
    page_no = max(1, page or 1)
    size = min(MAX_PAGE_SIZE, max(1, page_size or default_size))
    return page_no, size, (page_no - 1) * size


def suggestion_size(requested: Optional[int], default: int = 10) -> int:
    if not requested or requested < 1:
        return default
    return min(requested, MAX_SUGGESTIONS)


def clean_values(values: Optional[List[str]]) -> List[str]:
    return [v.strip() for v in values or [] if v and v.strip()]
