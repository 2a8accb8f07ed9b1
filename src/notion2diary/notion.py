"""Notion REST API からデータベースのページとブロックを取得するクライアント。"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

import httpx

from .errors import FetchError
from .models import Block, Page

API_BASE = "https://api.notion.com/v1/"
NOTION_VERSION = "2022-06-28"
PAGE_SIZE = 100
DEFAULT_TIMEOUT = 30.0
DEFAULT_MAX_CONCURRENCY = 3
MAX_RETRIES = 3


class NotionClient:
    """httpx.AsyncClient の上に構築した最小限の Notion クライアント。

    Notion API はワークスペースごとにおよそ毎秒 3 リクエストのレート制限があるため、
    同時リクエスト数を max_concurrency で制限し、429 応答は Retry-After に従って再試行します。
    """

    def __init__(
        self,
        token: str,
        *,
        client: httpx.AsyncClient | None = None,
        base_url: str = API_BASE,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._token = token
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        self._base_url = base_url if base_url.endswith("/") else base_url + "/"
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._logger = logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)

    async def __aenter__(self) -> "NotionClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_pages(self, database_id: str) -> list[Page]:
        """データベース内の全ページを、子ブロックを含めて取得します。"""

        raw_pages = await self._query_database(database_id)
        self._logger.info("データベースから %d 件のページを取得しました。", len(raw_pages))
        children = await asyncio.gather(*(self.fetch_blocks(str(raw["id"])) for raw in raw_pages))
        return [Page.from_api(raw, blocks) for raw, blocks in zip(raw_pages, children)]

    async def fetch_blocks(self, block_id: str) -> list[Block]:
        """ブロックの子要素を再帰的に取得します。"""

        raw_blocks = await self._paginate("GET", f"blocks/{block_id}/children")
        nested = await asyncio.gather(
            *(
                self.fetch_blocks(str(raw["id"])) if raw.get("has_children") else _no_children()
                for raw in raw_blocks
            )
        )
        return [Block.from_api(raw, children) for raw, children in zip(raw_blocks, nested)]

    # Internal helpers -------------------------------------------------

    async def _query_database(self, database_id: str) -> list[dict[str, Any]]:
        return await self._paginate("POST", f"databases/{database_id}/query")

    async def _paginate(self, method: str, path: str) -> list[dict[str, Any]]:
        results: list[dict[str, Any]] = []
        cursor: str | None = None
        while True:
            if method == "GET":
                params: dict[str, Any] = {"page_size": PAGE_SIZE}
                if cursor:
                    params["start_cursor"] = cursor
                payload = await self._request(method, path, params=params)
            else:
                body: dict[str, Any] = {"page_size": PAGE_SIZE}
                if cursor:
                    body["start_cursor"] = cursor
                payload = await self._request(method, path, json=body)
            results.extend(payload.get("results") or [])
            if not payload.get("has_more"):
                return results
            cursor = payload.get("next_cursor")
            if not cursor:
                return results

    async def _request(self, method: str, path: str, **kwargs: Any) -> Mapping[str, Any]:
        url = self._base_url + path
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Notion-Version": NOTION_VERSION,
        }
        attempt = 0
        while True:
            async with self._semaphore:
                try:
                    response = await self._client.request(method, url, headers=headers, **kwargs)
                except httpx.HTTPError as exc:
                    raise FetchError(url, f"Notion API への接続に失敗しました ({exc})") from exc
            if response.status_code == 429 and attempt < MAX_RETRIES:
                attempt += 1
                delay = _retry_after(response)
                self._logger.warning(
                    "Notion API のレート制限に達しました。%.1f 秒後に再試行します (%d/%d)。",
                    delay,
                    attempt,
                    MAX_RETRIES,
                )
                await asyncio.sleep(delay)
                continue
            if response.is_error:
                raise FetchError(url, _error_message(response), status=response.status_code)
            try:
                return response.json()
            except ValueError as exc:
                raise FetchError(url, "Notion API の応答を解析できませんでした") from exc


async def _no_children() -> list[Block]:
    return []


def _retry_after(response: httpx.Response) -> float:
    raw = response.headers.get("Retry-After")
    try:
        return max(0.0, float(raw)) if raw is not None else 1.0
    except ValueError:
        return 1.0


def _error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return "Notion API がエラーを返しました"
    message = payload.get("message") if isinstance(payload, dict) else None
    return f"Notion API がエラーを返しました ({message})" if message else "Notion API がエラーを返しました"
