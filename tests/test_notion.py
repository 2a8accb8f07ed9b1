from __future__ import annotations

import asyncio
import json
from datetime import date
from typing import Any

import httpx
import pytest

from notion2diary.errors import FetchError
from notion2diary.notion import NOTION_VERSION, NotionClient

PAGE_ONE = "11111111-1111-1111-1111-111111111111"
PAGE_TWO = "22222222-2222-2222-2222-222222222222"
BLOCK_PARENT = "33333333-3333-3333-3333-333333333333"
BLOCK_CHILD = "44444444-4444-4444-4444-444444444444"


def _text(content: str) -> list[dict[str, Any]]:
    return [{"type": "text", "plain_text": content, "text": {"content": content}}]


def _raw_page(page_id: str, title: str, day: str) -> dict[str, Any]:
    return {
        "id": page_id,
        "last_edited_time": "2021-11-08T10:00:00.000Z",
        "cover": None,
        "properties": {
            "Name": {"type": "title", "title": _text(title)},
            "Date": {"type": "date", "date": {"start": day, "end": None}},
            "Published": {"type": "date", "date": None},
        },
    }


def _raw_block(block_id: str, content: str, *, has_children: bool = False) -> dict[str, Any]:
    return {
        "id": block_id,
        "type": "paragraph",
        "has_children": has_children,
        "paragraph": {"rich_text": _text(content)},
    }


def _run(handler, coroutine_factory):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = NotionClient("secret-token", client=http)
            return await coroutine_factory(client)

    return asyncio.run(run())


def test_fetch_pages_follows_cursors_and_nested_children() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path.endswith("/databases/db/query"):
            body = json.loads(request.content)
            if body.get("start_cursor") == "cursor-2":
                return httpx.Response(200, json={"results": [_raw_page(PAGE_TWO, "Second", "2021-11-08")], "has_more": False})
            return httpx.Response(
                200,
                json={"results": [_raw_page(PAGE_ONE, "First", "2021-11-07")], "has_more": True, "next_cursor": "cursor-2"},
            )
        if path.endswith(f"/blocks/{PAGE_ONE}/children"):
            return httpx.Response(
                200,
                json={"results": [_raw_block(BLOCK_PARENT, "parent", has_children=True)], "has_more": False},
            )
        if path.endswith(f"/blocks/{BLOCK_PARENT}/children"):
            return httpx.Response(200, json={"results": [_raw_block(BLOCK_CHILD, "child")], "has_more": False})
        return httpx.Response(200, json={"results": [], "has_more": False})

    pages = _run(handler, lambda client: client.fetch_pages("db"))

    assert [page.id for page in pages] == [PAGE_ONE.replace("-", ""), PAGE_TWO.replace("-", "")]
    assert pages[0].title_text == "First"
    assert pages[0].date.calendar_date == date(2021, 11, 7)
    assert pages[0].published is None
    (parent,) = pages[0].children
    assert parent.children[0].id == BLOCK_CHILD.replace("-", "")
    assert pages[1].children == ()

    query_requests = [request for request in requests if request.method == "POST"]
    assert len(query_requests) == 2
    assert all(request.headers["Notion-Version"] == NOTION_VERSION for request in requests)
    assert all(request.headers["Authorization"] == "Bearer secret-token" for request in requests)


def test_block_children_pagination_uses_query_parameters() -> None:
    cursors: list[str | None] = []

    def handler(request: httpx.Request) -> httpx.Response:
        cursor = request.url.params.get("start_cursor")
        cursors.append(cursor)
        if cursor is None:
            return httpx.Response(
                200,
                json={"results": [_raw_block(BLOCK_PARENT, "one")], "has_more": True, "next_cursor": "next"},
            )
        return httpx.Response(200, json={"results": [_raw_block(BLOCK_CHILD, "two")], "has_more": False})

    blocks = _run(handler, lambda client: client.fetch_blocks(PAGE_ONE))

    assert cursors == [None, "next"]
    assert [block.rich_text[0].plain_text for block in blocks] == ["one", "two"]


def test_error_responses_raise_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"object": "error", "message": "API token is invalid."})

    with pytest.raises(FetchError) as excinfo:
        _run(handler, lambda client: client.fetch_pages("db"))

    assert excinfo.value.status == 401
    assert "API token is invalid." in str(excinfo.value)
    assert excinfo.value.url.endswith("/databases/db/query")


def test_transport_errors_raise_fetch_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(FetchError) as excinfo:
        _run(handler, lambda client: client.fetch_pages("db"))

    assert excinfo.value.status is None
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


def test_rate_limited_requests_are_retried() -> None:
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        if attempts == 1:
            return httpx.Response(429, headers={"Retry-After": "0"})
        return httpx.Response(200, json={"results": [], "has_more": False})

    pages = _run(handler, lambda client: client.fetch_pages("db"))

    assert pages == []
    assert attempts == 2


def test_max_concurrency_must_be_positive() -> None:
    with pytest.raises(ValueError):
        NotionClient("token", max_concurrency=0)
