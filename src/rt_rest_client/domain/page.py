from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict

PAGINATION_KEYS = ("page", "total", "pages", "count", "per_page", "items")


class PageEnvelope(BaseModel):
    """
    Pagination metadata of an RT collection response.

    Only the envelope is checked here; `items` stay undecoded so that callers can
    validate them against their own entity models.
    """

    model_config = ConfigDict(extra="ignore")

    page: Any
    total: Any
    pages: Any
    count: Any
    per_page: Any
    items: list[Any]
    next_page: str | None = None
    prev_page: str | None = None


def is_page_url(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL:
        return False
    return url.scheme in {"http", "https"} and bool(url.host)
