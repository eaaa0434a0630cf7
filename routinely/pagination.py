"""Page/limit slicing shared by admin listings and demographic stats."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any

from routinely.errors import InvalidInput, NotFound


@dataclass
class Page:
    results: list[Any] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 0
    total_results: int = 0

    def to_dict(self, key: str = "results") -> dict[str, Any]:
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "pageResults": len(self.results),
            "totalResults": self.total_results,
            key: [r.to_dict() if hasattr(r, "to_dict") else r for r in self.results],
        }


def paginate(items: list[Any], page: int = 1, limit: int = 10) -> Page:
    """Slice *items* into page number *page* (1-based) of size *limit*.

    Fails with NotFound when *page* is past the last page, which includes
    any page of an empty list.
    """
    if page <= 0 or limit <= 0:
        raise InvalidInput("Page and limit must be greater than 0.")
    total = len(items)
    total_pages = math.ceil(total / limit)
    if page > total_pages:
        raise NotFound("Page not found!")
    start = (page - 1) * limit
    return Page(
        results=items[start:start + limit],
        current_page=page,
        total_pages=total_pages,
        total_results=total,
    )
