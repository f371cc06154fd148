"""Test offset, page-number and cursor pagination."""
import pytest

from possync.integrations import (
    CursorPagination,
    OffsetPagination,
    Page,
    PageNumberPagination,
    get_strategy,
)
from possync.mapping import PaginationSpec


def extract(data):
    items = data.get("items", [])
    return Page(items=list(items), raw_count=len(items))


def offset_source(total):
    calls = []
    records = list(range(total))

    async def fetch_page(params):
        calls.append(dict(params))
        start = params["offset"]
        return {"items": records[start:start + params["limit"]]}

    return fetch_page, calls


@pytest.mark.asyncio
async def test_offset_collects_every_item_once():
    fetch_page, calls = offset_source(250)
    items = await OffsetPagination(PaginationSpec(type="offset", page_size=100)).fetch_all(fetch_page, extract)
    assert items == list(range(250))
    assert [c["offset"] for c in calls] == [0, 100, 200]


@pytest.mark.asyncio
async def test_offset_respects_max_items():
    fetch_page, calls = offset_source(1000)
    spec = PaginationSpec(type="offset", page_size=100, max_items=150)
    items = await OffsetPagination(spec).fetch_all(fetch_page, extract)
    assert items == list(range(150))
    assert [(c["offset"], c["limit"]) for c in calls] == [(0, 100), (100, 100)]


@pytest.mark.asyncio
async def test_page_number_cap_keeps_page_boundaries():
    calls = []
    records = list(range(300))

    async def fetch_page(params):
        calls.append(dict(params))
        start = (params["page"] - 1) * params["per_page"]
        return {"items": records[start:start + params["per_page"]]}

    spec = PaginationSpec(type="page", page_size=100, max_items=150)
    items = await PageNumberPagination(spec).fetch_all(fetch_page, extract)
    assert items == list(range(150))
    assert calls == [{"page": 1, "per_page": 100}, {"page": 2, "per_page": 100}]


@pytest.mark.asyncio
async def test_offset_exact_multiple_stops_on_empty_page():
    fetch_page, calls = offset_source(200)
    items = await OffsetPagination(PaginationSpec(type="offset", page_size=100)).fetch_all(fetch_page, extract)
    assert len(items) == 200
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_empty_first_page():
    fetch_page, calls = offset_source(0)
    items = await OffsetPagination(PaginationSpec(type="offset")).fetch_all(fetch_page, extract)
    assert items == []
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_page_number_starts_at_one_with_custom_params():
    calls = []
    pages = {1: ["a", "b"], 2: ["c", "d"], 3: ["e"]}

    async def fetch_page(params):
        calls.append(dict(params))
        return {"items": pages.get(params["p"], [])}

    spec = PaginationSpec(type="page", param_name="p", limit_param="size", page_size=2)
    items = await PageNumberPagination(spec).fetch_all(fetch_page, extract)
    assert items == ["a", "b", "c", "d", "e"]
    assert calls[0] == {"p": 1, "size": 2}
    assert [c["p"] for c in calls] == [1, 2, 3]


@pytest.mark.asyncio
async def test_has_more_false_stops():
    calls = 0

    async def fetch_page(params):
        nonlocal calls
        calls += 1
        return {"items": [1, 2], "meta": {"has_more": False}}

    spec = PaginationSpec(type="page", page_size=2, has_more_path="$.meta.has_more")
    items = await PageNumberPagination(spec).fetch_all(fetch_page, extract)
    assert items == [1, 2]
    assert calls == 1


@pytest.mark.asyncio
async def test_total_count_stops():
    calls = 0

    async def fetch_page(params):
        nonlocal calls
        calls += 1
        return {"items": [params["offset"], params["offset"] + 1], "total": 4}

    spec = PaginationSpec(type="offset", page_size=2, total_count_path="$.total")
    items = await OffsetPagination(spec).fetch_all(fetch_page, extract)
    assert items == [0, 1, 2, 3]
    assert calls == 2


@pytest.mark.asyncio
async def test_cursor_follows_next_cursor():
    pages = {
        None: {"items": [1, 2], "next": "c2"},
        "c2": {"items": [3, 4], "next": "c3"},
        "c3": {"items": [5], "next": None},
    }
    seen = []

    async def fetch_page(params):
        seen.append(params.get("cursor"))
        return pages[params.get("cursor")]

    spec = PaginationSpec(type="cursor", page_size=2, next_cursor_path="$.next")
    items = await CursorPagination(spec).fetch_all(fetch_page, extract)
    assert items == [1, 2, 3, 4, 5]
    assert seen == [None, "c2", "c3"]


@pytest.mark.asyncio
async def test_repeated_cursor_stops_loop():
    calls = 0

    async def fetch_page(params):
        nonlocal calls
        calls += 1
        return {"items": [calls], "next": "same"}

    spec = PaginationSpec(type="cursor", page_size=1, next_cursor_path="$.next")
    items = await CursorPagination(spec).fetch_all(fetch_page, extract)
    assert items == [1, 2]
    assert calls == 2


@pytest.mark.asyncio
async def test_max_pages_caps_misbehaving_vendor():
    calls = 0

    async def fetch_page(params):
        nonlocal calls
        calls += 1
        return {"items": [calls], "next": f"c{calls}"}

    spec = PaginationSpec(type="cursor", page_size=1, max_pages=5, next_cursor_path="$.next")
    items = await CursorPagination(spec).fetch_all(fetch_page, extract)
    assert calls == 5
    assert len(items) == 5


@pytest.mark.asyncio
async def test_no_pagination_is_one_request():
    calls = []

    async def fetch_page(params):
        calls.append(params)
        return {"items": [1, 2, 3]}

    items = await get_strategy(None).fetch_all(fetch_page, extract)
    assert items == [1, 2, 3]
    assert calls == [{}]


@pytest.mark.asyncio
async def test_skipped_records_do_not_end_pagination_early():
    # Two raw items per page, one of which is dropped by mapping.
    async def fetch_page(params):
        page = params["page"]
        return {"items": [page * 10, -1]} if page <= 2 else {"items": []}

    def extract_valid(data):
        raw = data["items"]
        return Page(items=[i for i in raw if i >= 0], raw_count=len(raw))

    spec = PaginationSpec(type="page", page_size=2)
    items = await PageNumberPagination(spec).fetch_all(fetch_page, extract_valid)
    assert items == [10, 20]
