import math
from dataclasses import dataclass

from fastapi import Query
from sqlalchemy.orm import Query as OrmQuery


@dataclass
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(default_limit: int = 10, max_limit: int = 100):
    """Build a dependency reading ``page``/``limit`` query parameters."""

    def dependency(
        page: int = Query(1, ge=1),
        limit: int = Query(default_limit, ge=1, le=max_limit),
    ) -> PageParams:
        return PageParams(page=page, limit=limit)

    return dependency


def pagination_meta(params: PageParams, total: int) -> dict:
    return {
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "pages": math.ceil(total / params.limit) if params.limit else 0,
    }


def paginate(query: OrmQuery, params: PageParams):
    """Return (items, pagination) for an ordered ORM query."""
    total = query.order_by(None).count()
    items = query.offset(params.offset).limit(params.limit).all()
    return items, pagination_meta(params, total)
