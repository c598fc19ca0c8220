"""Length-aware pagination helpers."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from math import ceil
from typing import Any
from urllib.parse import urlencode

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100


def normalize_page_params(page: int | None, per_page: int | None) -> tuple[int, int]:
    """Clamp page/per_page query values to a usable range."""
    page = max(page or 1, 1)
    per_page = min(max(per_page or DEFAULT_PER_PAGE, 1), MAX_PER_PAGE)
    return page, per_page


@dataclass(frozen=True)
class Page:
    """One page of a collection together with the collection total."""

    items: Sequence[Any]
    total: int
    page: int = 1
    per_page: int = DEFAULT_PER_PAGE
    path: str = ""
    query: dict[str, Any] = field(default_factory=dict)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page

    @property
    def last_page(self) -> int:
        return max(ceil(self.total / self.per_page), 1)

    @property
    def first_item(self) -> int | None:
        if not self.items:
            return None
        return self.offset + 1

    @property
    def last_item(self) -> int | None:
        if not self.items:
            return None
        return self.offset + len(self.items)

    @property
    def has_more_pages(self) -> bool:
        return self.page < self.last_page

    def url(self, page: int) -> str:
        params = {key: value for key, value in self.query.items() if key != "page"}
        params["page"] = max(page, 1)
        return f"{self.path}?{urlencode(params)}"

    def previous_page_url(self) -> str | None:
        if self.page <= 1:
            return None
        return self.url(self.page - 1)

    def next_page_url(self) -> str | None:
        if not self.has_more_pages:
            return None
        return self.url(self.page + 1)
