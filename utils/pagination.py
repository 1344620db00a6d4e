from typing import Optional, Generic, TypeVar, List
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE, MAX_PAGE, MAX_PAGE_SIZE

T = TypeVar('T')


class PaginatedResponse(BaseModel, Generic[T]):
    """Generic paginated response model"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: List[T]
    total: int
    pages: int
    current_page: int
    page_size: int


def normalize_pagination(page: Optional[int] = None, page_size: Optional[int] = None) -> tuple[int, int]:
    """
    Clamp pagination input to usable values instead of rejecting it.

    Args:
        page: Page number (1-indexed)
        page_size: Number of items per page

    Returns:
        Tuple of (page, page_size)
    """
    page = page if page is not None and page > 0 else DEFAULT_PAGE
    # skip is sent to MongoDB as a 64-bit int
    page = min(page, MAX_PAGE)
    page_size = page_size if page_size is not None and page_size > 0 else DEFAULT_PAGE_SIZE
    return page, min(page_size, MAX_PAGE_SIZE)


def create_paginated_response(
    items: List[T],
    total: int,
    page: int,
    page_size: int
) -> PaginatedResponse[T]:
    """Wrap one page of items with the totals the admin inbox needs."""
    pages = (total + page_size - 1) // page_size if total > 0 else 0

    return PaginatedResponse(
        items=items,
        total=total,
        pages=pages,
        current_page=page,
        page_size=page_size
    )
