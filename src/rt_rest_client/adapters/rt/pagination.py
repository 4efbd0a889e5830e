"""Reassemble RT's paginated collection responses into a single list of records."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from rt_rest_client.adapters.rt.transport import RawResponse
from rt_rest_client.domain.errors import (
    FailedToDecodePage,
    FailedToFetchPaginatedData,
    InvalidFirstPage,
    PaginationLimitExceeded,
)
from rt_rest_client.domain.page import PageEnvelope, is_page_url

log = structlog.get_logger(__name__)

PageFetcher = Callable[[str], Awaitable[RawResponse]]


def _start_cursor(first_page: Any) -> tuple[list[Any], str | None]:
    if not isinstance(first_page, Mapping):
        raise InvalidFirstPage("First page must be a JSON object")

    if first_page.get("prev_page") is not None:
        raise InvalidFirstPage(
            "Refusing to aggregate paginated data starting from a page other than the first"
        )

    items = first_page.get("items")
    if not isinstance(items, list):
        raise InvalidFirstPage("First page has no `items` list")

    next_page = first_page.get("next_page")
    if next_page is not None and not is_page_url(next_page):
        raise InvalidFirstPage(f"First page has a malformed next_page: {next_page!r}")

    return list(items), next_page


def _decode_page(response: RawResponse) -> PageEnvelope:
    try:
        page = PageEnvelope.model_validate_json(response.content)
    except ValidationError as exc:
        raise FailedToDecodePage(
            f"Response from {response.url} is not a valid paginated response"
        ) from exc

    if page.next_page is not None and not is_page_url(page.next_page):
        raise FailedToDecodePage(
            f"Response from {response.url} has a malformed next_page: {page.next_page!r}"
        )
    return page


async def aggregate(
    first_page: Any,
    fetch_page: PageFetcher,
    *,
    max_pages: int | None = None,
) -> list[Any]:
    """
    Concatenate the `items` of `first_page` and every page reachable through `next_page`.

    `fetch_page` performs one GET for a page URL with the caller's authentication.
    Pages are fetched strictly one after another. Any failure discards the items
    collected so far. `max_pages` bounds the total number of pages including the
    first one; None means no bound.
    """
    accumulated, cursor = _start_cursor(first_page)
    if cursor is None:
        return accumulated

    pages_seen = 1
    while cursor is not None:
        if max_pages is not None and pages_seen >= max_pages:
            log.warning("rt.pagination.failed", stage="limit", max_pages=max_pages)
            raise PaginationLimitExceeded(
                f"Server announced more than {max_pages} pages (next: {cursor})"
            )

        response = await fetch_page(cursor)
        if response.status_code != 200:
            log.warning(
                "rt.pagination.failed",
                stage="fetch",
                url=cursor,
                status=response.status_code,
            )
            raise FailedToFetchPaginatedData(
                f"Fetching page {cursor} failed (status={response.status_code})",
                url=cursor,
                status_code=response.status_code,
            )

        try:
            page = _decode_page(response)
        except FailedToDecodePage:
            log.warning("rt.pagination.failed", stage="decode", url=cursor)
            raise

        accumulated.extend(page.items)
        pages_seen += 1
        log.debug(
            "rt.pagination.page",
            url=cursor,
            page=page.page,
            items=len(page.items),
            collected=len(accumulated),
        )
        cursor = page.next_page

    return accumulated
