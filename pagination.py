import math
from dataclasses import dataclass


@dataclass
class Page:
    page: int
    limit: int
    total: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def to_dict(self) -> dict:
        total_pages = self.total_pages
        return {
            "page": self.page,
            "limit": self.limit,
            "total": self.total,
            "totalPages": total_pages,
            "hasNextPage": self.page < total_pages,
            "hasPrevPage": self.page > 1,
        }


def paginate(query, page: int, limit: int):
    """Run `query` for one page. Returns (rows, Page)."""
    total = query.order_by(None).count()
    meta = Page(page=page, limit=limit, total=total)
    rows = query.offset(meta.offset).limit(limit).all()
    return rows, meta
