import math
from dataclasses import dataclass
from typing import Optional, Tuple

from roombook.config.loader import get_pagination_settings


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def clamp_page(page: Optional[int], limit: Optional[int]) -> PageRequest:
    """
    Clamp paging input instead of rejecting it.

    page < 1 becomes 1, limit is forced into [1, max_limit] and a missing limit
    uses the configured default.
    """
    settings = get_pagination_settings()
    safe_page = page if page is not None and page >= 1 else 1
    if limit is None:
        safe_limit = settings["default_limit"]
    else:
        safe_limit = max(1, min(int(limit), settings["max_limit"]))
    return PageRequest(page=int(safe_page), limit=safe_limit)


def total_pages(total: int, limit: int) -> int:
    if total <= 0 or limit <= 0:
        return 0
    return math.ceil(total / limit)


def pagination_meta(page_request: PageRequest, total: int) -> dict:
    return {
        "page": page_request.page,
        "limit": page_request.limit,
        "total": total,
        "total_pages": total_pages(total, page_request.limit),
    }


def paginate(query, page_request: PageRequest) -> Tuple[list, int]:
    """Run ``query`` for one page; returns (items, total count before paging)."""
    total = query.order_by(None).count()
    items = query.offset(page_request.offset).limit(page_request.limit).all()
    return items, total
