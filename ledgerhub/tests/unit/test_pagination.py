from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pytest

from ledgerhub.core.errors import InvalidRequest
from ledgerhub.services.pagination import (
    Collection,
    CursorError,
    build_cursor,
    cursor_key,
    decode_cursor,
    encode_cursor,
    paginate,
    resolve_page_size,
)


SECRET = "unit-secret"


@dataclass
class Row:
    id: int


def _ascending(scope: str = "rows:a") -> Collection:
    return Collection(scope=scope, key_of=lambda row: [row.id], default_page_size=4, max_page_size=10)


def _fetch_ascending(rows: list[Row]):
    async def fetch(after: list[Any] | None, limit: int) -> list[Row]:
        ordered = sorted(rows, key=lambda row: row.id)
        if after is not None:
            ordered = [row for row in ordered if row.id > after[0]]
        return ordered[:limit]

    return fetch


def _fetch_descending(rows: list[Row]):
    async def fetch(after: list[Any] | None, limit: int) -> list[Row]:
        ordered = sorted(rows, key=lambda row: row.id, reverse=True)
        if after is not None:
            ordered = [row for row in ordered if row.id < after[0]]
        return ordered[:limit]

    return fetch


async def _walk(collection: Collection, fetch, page_size: int) -> list[list[int]]:
    pages: list[list[int]] = []
    cursor = None
    while True:
        page = await paginate(collection, cursor, page_size, fetch, secret=SECRET)
        pages.append([row.id for row in page.items])
        if page.next_cursor is None:
            return pages
        cursor = page.next_cursor


def test_cursor_payload_is_signed_and_decodable() -> None:
    token = encode_cursor({"v": 1, "scope": "rows:a", "key": [3]}, SECRET)
    assert decode_cursor(token, SECRET) == {"v": 1, "scope": "rows:a", "key": [3]}
    assert "=" not in token


@pytest.mark.parametrize("token", ["not-a-cursor", "abc.def", "!!!.signature", ""])
def test_garbage_cursors_are_rejected(token: str) -> None:
    with pytest.raises(CursorError):
        decode_cursor(token, SECRET)


def test_tampered_cursor_is_rejected() -> None:
    token = encode_cursor({"v": 1, "scope": "rows:a", "key": [3]}, SECRET)
    forged = encode_cursor({"v": 1, "scope": "rows:a", "key": [0]}, SECRET)
    spliced = f"{forged.split('.')[0]}.{token.split('.')[1]}"
    with pytest.raises(CursorError, match="signature"):
        decode_cursor(spliced, SECRET)
    with pytest.raises(CursorError, match="signature"):
        decode_cursor(token, "another-secret")


def test_cursor_is_bound_to_its_collection() -> None:
    token = build_cursor(_ascending("rows:a"), Row(id=2), SECRET)
    assert cursor_key(token, _ascending("rows:a"), SECRET) == [2]
    with pytest.raises(CursorError, match="scope"):
        cursor_key(token, _ascending("rows:b"), SECRET)


def test_cursor_version_and_key_are_checked() -> None:
    wrong_version = encode_cursor({"v": 2, "scope": "rows:a", "key": [1]}, SECRET)
    with pytest.raises(CursorError, match="version"):
        cursor_key(wrong_version, _ascending(), SECRET)
    empty_key = encode_cursor({"v": 1, "scope": "rows:a", "key": []}, SECRET)
    with pytest.raises(CursorError, match="key"):
        cursor_key(empty_key, _ascending(), SECRET)


def test_cursor_errors_are_invalid_requests() -> None:
    with pytest.raises(InvalidRequest):
        cursor_key("nope", _ascending(), SECRET)


def test_absent_cursor_starts_at_head() -> None:
    assert cursor_key(None, _ascending(), SECRET) is None
    assert cursor_key("", _ascending(), SECRET) is None


def test_page_size_defaults_and_clamps() -> None:
    collection = _ascending()
    assert resolve_page_size(None, collection) == 4
    assert resolve_page_size(3, collection) == 3
    assert resolve_page_size(10, collection) == 10
    assert resolve_page_size(1000, collection) == 10
    assert resolve_page_size("3", collection) == 3
    assert resolve_page_size("1000", collection) == 10


@pytest.mark.parametrize("size", [0, -5, "0", "abc", "2.5", ""])
def test_invalid_page_size_is_rejected(size) -> None:
    with pytest.raises(InvalidRequest):
        resolve_page_size(size, _ascending())


async def test_walk_covers_every_item_once() -> None:
    rows = [Row(id=i) for i in range(1, 11)]
    pages = await _walk(_ascending(), _fetch_ascending(rows), 3)
    assert pages == [[1, 2, 3], [4, 5, 6], [7, 8, 9], [10]]


async def test_exact_multiple_has_no_trailing_empty_page() -> None:
    rows = [Row(id=i) for i in range(1, 7)]
    pages = await _walk(_ascending(), _fetch_ascending(rows), 3)
    assert pages == [[1, 2, 3], [4, 5, 6]]


async def test_empty_collection_yields_one_empty_page() -> None:
    page = await paginate(_ascending(), None, 5, _fetch_ascending([]), secret=SECRET)
    assert page.items == []
    assert page.next_cursor is None


async def test_oversized_request_is_clamped_to_max() -> None:
    rows = [Row(id=i) for i in range(1, 31)]
    page = await paginate(_ascending(), None, 500, _fetch_ascending(rows), secret=SECRET)
    assert len(page.items) == 10
    assert page.next_cursor is not None


async def test_same_cursor_returns_same_page() -> None:
    rows = [Row(id=i) for i in range(1, 11)]
    fetch = _fetch_ascending(rows)
    first = await paginate(_ascending(), None, 3, fetch, secret=SECRET)
    again = await paginate(_ascending(), first.next_cursor, 3, fetch, secret=SECRET)
    once_more = await paginate(_ascending(), first.next_cursor, 3, fetch, secret=SECRET)
    assert [row.id for row in again.items] == [row.id for row in once_more.items] == [4, 5, 6]
    assert again.next_cursor == once_more.next_cursor


async def test_appends_between_pages_cause_no_gap_or_overlap() -> None:
    rows = [Row(id=i) for i in range(1, 6)]
    fetch = _fetch_ascending(rows)
    first = await paginate(_ascending(), None, 3, fetch, secret=SECRET)
    rows.extend([Row(id=6), Row(id=7)])
    second = await paginate(_ascending(), first.next_cursor, 3, fetch, secret=SECRET)
    third = await paginate(_ascending(), second.next_cursor, 3, fetch, secret=SECRET)
    seen = [row.id for page in (first, second, third) for row in page.items]
    assert seen == [1, 2, 3, 4, 5, 6, 7]
    assert third.next_cursor is None


async def test_newest_first_feed_keeps_position_when_items_arrive() -> None:
    collection = Collection(scope="feed:x", key_of=lambda row: [row.id], default_page_size=2, max_page_size=5)
    rows = [Row(id=i) for i in range(1, 6)]
    fetch = _fetch_descending(rows)
    first = await paginate(collection, None, 2, fetch, secret=SECRET)
    assert [row.id for row in first.items] == [5, 4]
    rows.append(Row(id=6))
    second = await paginate(collection, first.next_cursor, 2, fetch, secret=SECRET)
    third = await paginate(collection, second.next_cursor, 2, fetch, secret=SECRET)
    assert [row.id for row in second.items] == [3, 2]
    assert [row.id for row in third.items] == [1]
    assert third.next_cursor is None
    # A fresh walk from the head sees the new item.
    fresh = await paginate(collection, None, 2, fetch, secret=SECRET)
    assert [row.id for row in fresh.items] == [6, 5]


async def test_fetch_is_asked_for_one_extra_row() -> None:
    requested: list[int] = []

    async def fetch(after, limit):
        requested.append(limit)
        return []

    await paginate(_ascending(), None, 3, fetch, secret=SECRET)
    assert requested == [4]
