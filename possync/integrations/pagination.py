"""
POSSync Pagination Engine.

Three interchangeable strategies behind one ``fetch_all`` contract:
- OffsetPagination: offset/limit, offset advances by items received
- CursorPagination: next cursor read from a configured response path
- PageNumberPagination: page/per_page starting at page 1

Every strategy stops on an empty page, on a short page, on a false
has-more flag, at the item cap, or at the page cap, so a misbehaving
vendor can never keep the loop alive.
"""
from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar
import logging

from possync.mapping.json_path import evaluate
from possync.mapping.models import PaginationSpec

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One fetched page: mapped items plus how many raw items arrived."""
    items: list[T] = field(default_factory=list)
    raw_count: int = 0


# query params for this page -> parsed response body
FetchPage = Callable[[dict[str, Any]], Awaitable[Any]]
# parsed response body -> Page
ExtractPage = Callable[[Any], Page[T]]


def _falsy_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("false", "0", "no", "")
    return value is False or value == 0


class PaginationStrategy(ABC, Generic[T]):
    """Base strategy; subclasses decide the query for each page."""

    def __init__(self, spec: PaginationSpec):
        self.spec = spec

    @abstractmethod
    async def fetch_all(self, fetch_page: FetchPage, extract: ExtractPage[T]) -> list[T]:
        """Fetch every page and return the concatenated items, capped."""

    # Page size never shrinks near the cap; shifting page boundaries would
    # re-fetch or skip items. The cap is applied by slicing instead.
    def _capped(self, collected: list[T]) -> bool:
        return len(collected) >= self.spec.max_items

    def _page_is_last(self, data: Any, page: Page[T], requested: int, raw_total: int) -> bool:
        if page.raw_count == 0:
            return True
        if page.raw_count < requested:
            return True
        if self.spec.has_more_path:
            has_more = evaluate(data, self.spec.has_more_path)
            if has_more is not None and _falsy_flag(has_more):
                return True
        if self.spec.total_count_path:
            total = evaluate(data, self.spec.total_count_path)
            try:
                if total is not None and raw_total >= int(total):
                    return True
            except (TypeError, ValueError):
                pass
        return False


class OffsetPagination(PaginationStrategy[T]):

    async def fetch_all(self, fetch_page: FetchPage, extract: ExtractPage[T]) -> list[T]:
        collected: list[T] = []
        offset = 0
        for page_number in range(1, self.spec.max_pages + 1):
            limit = self.spec.page_size
            data = await fetch_page({
                self.spec.resolved_param_name: offset,
                self.spec.resolved_limit_param: limit,
            })
            page = extract(data)
            collected.extend(page.items)
            offset += page.raw_count
            logger.debug("offset page %d: %d items (offset now %d)", page_number, page.raw_count, offset)
            if self._capped(collected) or self._page_is_last(data, page, limit, offset):
                break
        return collected[: self.spec.max_items]


class PageNumberPagination(PaginationStrategy[T]):

    async def fetch_all(self, fetch_page: FetchPage, extract: ExtractPage[T]) -> list[T]:
        collected: list[T] = []
        raw_total = 0
        for page_number in range(1, self.spec.max_pages + 1):
            limit = self.spec.page_size
            data = await fetch_page({
                self.spec.resolved_param_name: page_number,
                self.spec.resolved_limit_param: limit,
            })
            page = extract(data)
            collected.extend(page.items)
            raw_total += page.raw_count
            logger.debug("page %d: %d items", page_number, page.raw_count)
            if self._capped(collected) or self._page_is_last(data, page, limit, raw_total):
                break
        return collected[: self.spec.max_items]


class CursorPagination(PaginationStrategy[T]):

    async def fetch_all(self, fetch_page: FetchPage, extract: ExtractPage[T]) -> list[T]:
        collected: list[T] = []
        seen_cursors: set[str] = set()
        cursor: str | None = None
        for page_number in range(1, self.spec.max_pages + 1):
            limit = self.spec.page_size
            params: dict[str, Any] = {self.spec.resolved_limit_param: limit}
            if cursor is not None:
                params[self.spec.resolved_param_name] = cursor
            data = await fetch_page(params)
            page = extract(data)
            collected.extend(page.items)
            logger.debug("cursor page %d: %d items", page_number, page.raw_count)

            if page.raw_count == 0 or self._capped(collected) or not self.spec.next_cursor_path:
                break
            if self.spec.has_more_path:
                has_more = evaluate(data, self.spec.has_more_path)
                if has_more is not None and _falsy_flag(has_more):
                    break
            next_cursor = evaluate(data, self.spec.next_cursor_path)
            if next_cursor is None or next_cursor == "":
                break
            next_cursor = str(next_cursor)
            if next_cursor in seen_cursors:
                logger.warning("Cursor %r repeated, stopping pagination", next_cursor)
                break
            seen_cursors.add(next_cursor)
            cursor = next_cursor
        return collected[: self.spec.max_items]


class SinglePage(Generic[T]):
    """No pagination configured: a single request."""

    async def fetch_all(self, fetch_page: FetchPage, extract: ExtractPage[T]) -> list[T]:
        return extract(await fetch_page({})).items


_STRATEGIES: dict[str, type[PaginationStrategy]] = {
    "offset": OffsetPagination,
    "cursor": CursorPagination,
    "page": PageNumberPagination,
}


def get_strategy(spec: PaginationSpec | None) -> PaginationStrategy | SinglePage:
    if spec is None:
        return SinglePage()
    return _STRATEGIES[spec.type](spec)
