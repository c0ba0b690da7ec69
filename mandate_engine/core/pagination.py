"""Pagination and sorting helpers for list endpoints."""

from __future__ import annotations

from fastapi import Query
from pydantic import BaseModel

from mandate_engine.core.config import settings


class PaginationParams:
    """FastAPI dependency for `?page=1&limit=20&sort=created_at&order=desc`."""

    def __init__(
        self,
        page: int = Query(default=1, ge=1, description="Page number (1-based)"),
        limit: int = Query(
            default=20, ge=1, le=settings.max_page_size, description="Items per page"
        ),
        sort: str = Query(
            default="created_at",
            pattern="^(created_at|start_date|property_title|commission_rate|counterparty_name)$",
            description="Sort field",
        ),
        order: str = Query(default="desc", pattern="^(asc|desc)$", description="Sort order"),
    ):
        self.page = page
        self.limit = limit
        self.sort = sort
        self.order = order

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def slice(self, items: list) -> list:
        return items[self.offset:self.offset + self.limit]


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    pages: int

    model_config = {"populate_by_name": True}
