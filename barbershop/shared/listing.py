"""
Configurable admin list: status filter, free-text search, projection and
pagination over already-loaded documents. Admin screens differ only in the
ListConfig they pass.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, Optional

from ..config import ADMIN_PAGE_SIZE


@dataclass(frozen=True)
class ListConfig:
    page_size: int = ADMIN_PAGE_SIZE
    search_fields: tuple[str, ...] = ()
    status_field: str = "status"
    columns: tuple[str, ...] = ()
    status_labels: dict = field(default_factory=dict)


@dataclass
class Page:
    items: list[dict]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return max(1, math.ceil(self.total / self.page_size)) if self.page_size else 1

    def to_dict(self) -> dict:
        return {
            "items": self.items,
            "page": self.page,
            "pageSize": self.page_size,
            "total": self.total,
            "totalPages": self.total_pages,
        }


def filter_items(
    items: Iterable[dict],
    config: ListConfig,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> list[dict]:
    items = list(items)

    if status and status != "all":
        items = [item for item in items if item.get(config.status_field) == status]

    if search:
        needle = search.strip().lower()
        items = [
            item
            for item in items
            if any(needle in str(item.get(f) or "").lower() for f in config.search_fields)
        ]

    return items


def project(item: dict, config: ListConfig) -> dict:
    row = {column: item.get(column) for column in config.columns} if config.columns else dict(item)
    if config.status_labels:
        status = item.get(config.status_field)
        row["statusLabel"] = config.status_labels.get(status, status)
    return row


def build_page(
    items: Iterable[dict],
    config: ListConfig,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
) -> Page:
    filtered = filter_items(items, config, status=status, search=search)
    total = len(filtered)
    page_size = config.page_size

    total_pages = max(1, math.ceil(total / page_size)) if page_size else 1
    page = min(max(page, 1), total_pages)
    start = (page - 1) * page_size
    chunk = filtered[start : start + page_size] if page_size else filtered

    return Page(
        items=[project(item, config) for item in chunk],
        page=page,
        page_size=page_size,
        total=total,
    )
