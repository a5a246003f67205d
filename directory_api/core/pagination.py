"""
Offset pagination helpers shared by list endpoints
"""
from math import ceil
from typing import Any, Dict

from fastapi import Query
from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    """Standard pagination parameters"""
    page: int = Field(1, ge=1, description="Page number (1-based)")
    limit: int = Field(20, ge=1, le=100, description="Items per page (max 100)")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def get_pagination_params(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page (max 100)")
) -> PaginationParams:
    """FastAPI dependency for standard pagination parameters"""
    return PaginationParams(page=page, limit=limit)


def build_pagination(page: int, limit: int, total_count: int) -> Dict[str, Any]:
    """Pagination metadata for a page of ``limit`` items out of ``total_count``"""
    total_pages = ceil(total_count / limit) if total_count > 0 else 0
    has_next = page < total_pages
    has_previous = page > 1

    return {
        "currentPage": page,
        "pageSize": limit,
        "totalItems": total_count,
        "totalPages": total_pages,
        "hasNext": has_next,
        "hasPrevious": has_previous,
    }
