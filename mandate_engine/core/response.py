"""Response envelopes for the mandate API.

Single mandates, board columns, KPIs and history come back as `{data}`; the
mandate list is paged in memory after filtering and sorting and comes back as
`{data, meta}`.
"""

from __future__ import annotations

import math
from typing import Generic, TypeVar

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from mandate_engine.core.pagination import PageMeta, PaginationParams

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """`{ data: ... }` around a mandate, a list of mandates, the board or the KPIs."""

    data: T

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
    }


class ListResponse(BaseModel, Generic[T]):
    """One page of the mandate list: `{ data: [...], meta: {total, page, limit, pages} }`"""

    data: list[T]
    meta: PageMeta

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
    }


def paginated(page_items: list, total: int, params: PaginationParams) -> dict:
    """Wrap one already-sliced page; `total` counts every matching mandate."""
    return {
        "data": page_items,
        "meta": {
            "total": total,
            "page": params.page,
            "limit": params.limit,
            "pages": math.ceil(total / params.limit),
        },
    }
