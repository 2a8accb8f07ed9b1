"""Notion のブロックとリッチテキストを HTML に変換するレンダラー。"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from itertools import groupby
from pathlib import Path, PurePosixPath
from typing import AbstractSet, Iterable, Iterator, Mapping, Sequence
from urllib.parse import urlparse

import httpx
from markupsafe import Markup, escape

from .errors import FetchError, RenderError
from .models import Block, FileRef, Page, RichText, plain_text, rich_text_from_api

logger = logging.getLogger(__name__)

MEDIA_ROUTE = "/media"
_NOTION_HOSTS = ("notion.so", "notion.site")
_TRAILING_ID = re.compile(r"([0-9a-f]{32})$")
_LIST_TAGS = {"bulleted_list_item": "ul", "numbered_list_item": "ol"}


class HeadingAnchors(Enum):
    NONE = "none"
    AFTER = "after"


@dataclass(frozen=True, slots=True)
class Downloadable:
    """出力ディレクトリへ保存する必要のある Notion ホストのファイル。"""

    url: str
    file_name: str

    @property
    def src_path(self) -> str:
        return f"{MEDIA_ROUTE}/{self.file_name}"


class Downloadables:
    """レンダリング中に見つかったダウンロード対象を収集します。"""

    def __init__(self) -> None:
        self._items: dict[str, Downloadable] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Downloadable]:
        return iter(sorted(self._items.values(), key=lambda item: item.file_name))

    def register(self, media_id: str, file: FileRef) -> str:
        """ファイル参照を登録し、HTML から参照するパスを返します。"""

        if not file.is_hosted:
            return file.url
        suffix = PurePosixPath(urlparse(file.url).path).suffix.lower() or ".bin"
        downloadable = Downloadable(url=file.url, file_name=f"{media_id}{suffix}")
        self._items.setdefault(downloadable.file_name, downloadable)
        return downloadable.src_path

    async def download_all(self, client: httpx.AsyncClient, media_dir: Path) -> int:
        items = list(self)
        if not items:
            return 0
        media_dir.mkdir(parents=True, exist_ok=True)

        async def fetch(item: Downloadable) -> None:
            try:
                response = await client.get(item.url)
            except httpx.HTTPError as exc:
                raise FetchError(item.url, f"メディアの取得に失敗しました ({exc})") from exc
            if response.is_error:
                raise FetchError(item.url, "メディアの取得に失敗しました", status=response.status_code)
            await asyncio.to_thread((media_dir / item.file_name).write_bytes, response.content)
            logger.info("メディアを保存しました: %s", item.file_name)

        await asyncio.gather(*(fetch(item) for item in items))
        return len(items)


class HtmlRenderer:
    """リンク表を読み取り専用で参照しながら Notion のコンテンツを HTML にします。

    current_pages は同じ文書内で一緒にレンダリングされるページ ID の集合で、
    これらへのリンクはページ内アンカーに置き換えられます。
    """

    def __init__(
        self,
        link_table: Mapping[str, str],
        current_pages: AbstractSet[str] = frozenset(),
        downloadables: Downloadables | None = None,
        heading_anchors: HeadingAnchors = HeadingAnchors.AFTER,
    ) -> None:
        self._link_table = link_table
        self._current_pages = frozenset(current_pages)
        self._downloadables = downloadables if downloadables is not None else Downloadables()
        self._heading_anchors = heading_anchors

    @property
    def downloadables(self) -> Downloadables:
        return self._downloadables

    def render_blocks(self, blocks: Sequence[Block], page_id: str | None = None) -> Markup:
        parts: list[str] = []
        for kind, run in groupby(blocks, key=lambda block: block.type):
            items = list(run)
            if kind in _LIST_TAGS:
                tag = _LIST_TAGS[kind]
                inner = "".join(self._render_list_item(block, page_id) for block in items)
                parts.append(f"<{tag}>{inner}</{tag}>")
                continue
            parts.extend(self._render_block(block, page_id) for block in items)
        return Markup("".join(parts))

    def render_rich_text(self, rich_text: Sequence[RichText]) -> Markup:
        return Markup("".join(self._render_segment(segment) for segment in rich_text))

    def plain_text(self, rich_text: Sequence[RichText]) -> str:
        return plain_text(rich_text)

    def render_heading(self, element_id: str, level: int, rich_text: Sequence[RichText]) -> Markup:
        anchor = ""
        if self._heading_anchors is HeadingAnchors.AFTER:
            anchor = f'<a href="#{escape(element_id)}">#</a>'
        return Markup(
            f'<h{level} id="{escape(element_id)}">{self.render_rich_text(rich_text)}{anchor}</h{level}>'
        )

    def cover_src(self, page_id: str, cover: FileRef | None) -> str | None:
        if cover is None:
            return None
        return self._downloadables.register(page_id, cover)

    def resolve_page_link(self, target_id: str) -> str | None:
        if target_id in self._current_pages:
            return f"#{target_id}"
        return self._link_table.get(target_id)

    # Internal helpers -------------------------------------------------

    def _render_block(self, block: Block, page_id: str | None) -> str:
        block_id = escape(block.id)
        children = self.render_blocks(block.children, page_id) if block.children else Markup("")
        kind = block.type
        if kind == "paragraph":
            text = self.render_rich_text(block.rich_text)
            if not children:
                return f'<p id="{block_id}">{text}</p>'
            return f'<div id="{block_id}"><p>{text}</p><div class="indent">{children}</div></div>'
        if kind in {"heading_1", "heading_2", "heading_3"}:
            level = int(kind[-1]) + 1
            return str(self.render_heading(block.id, level, block.rich_text))
        if kind == "quote":
            return f'<blockquote id="{block_id}">{self.render_rich_text(block.rich_text)}{children}</blockquote>'
        if kind == "to_do":
            checked = " checked" if block.data.get("checked") else ""
            return (
                f'<div id="{block_id}" class="to-do"><input type="checkbox" disabled{checked}>'
                f"<span>{self.render_rich_text(block.rich_text)}</span>{children}</div>"
            )
        if kind == "callout":
            icon = block.data.get("icon") or {}
            emoji = escape(icon.get("emoji", "")) if icon.get("type") == "emoji" else ""
            return (
                f'<aside id="{block_id}" class="callout"><span class="callout-icon">{emoji}</span>'
                f"<div>{self.render_rich_text(block.rich_text)}{children}</div></aside>"
            )
        if kind == "code":
            language = escape((block.data.get("language") or "plain text").replace(" ", "-"))
            source = escape(plain_text(block.rich_text))
            return f'<pre id="{block_id}"><code class="language-{language}">{source}</code></pre>'
        if kind == "divider":
            return f'<hr id="{block_id}">'
        if kind == "equation":
            expression = escape(block.data.get("expression") or "")
            return f'<div id="{block_id}" class="equation">\\[{expression}\\]</div>'
        if kind == "image":
            return self._render_image(block, page_id)
        raise RenderError(f"未対応のブロック種別です: {kind}", block_id=block.id, page_id=page_id)

    def _render_list_item(self, block: Block, page_id: str | None) -> str:
        children = self.render_blocks(block.children, page_id) if block.children else ""
        return f'<li id="{escape(block.id)}">{self.render_rich_text(block.rich_text)}{children}</li>'

    def _render_image(self, block: Block, page_id: str | None) -> str:
        file = FileRef.from_api(block.data)
        if file is None:
            raise RenderError("画像ブロックに URL がありません", block_id=block.id, page_id=page_id)
        src = self._downloadables.register(block.id, file)
        caption = rich_text_from_api(block.data.get("caption"))
        alt = escape(plain_text(caption))
        figcaption = f"<figcaption>{self.render_rich_text(caption)}</figcaption>" if caption else ""
        return f'<figure id="{escape(block.id)}"><img src="{escape(src)}" alt="{alt}">{figcaption}</figure>'

    def _render_segment(self, segment: RichText) -> str:
        if segment.kind == "equation":
            return f'<span class="equation">\\({escape(segment.expression or segment.plain_text)}\\)</span>'
        content = str(escape(segment.plain_text))
        annotations = segment.annotations
        for enabled, tag in (
            (annotations.code, "code"),
            (annotations.bold, "strong"),
            (annotations.italic, "em"),
            (annotations.strikethrough, "del"),
            (annotations.underline, "u"),
        ):
            if enabled:
                content = f"<{tag}>{content}</{tag}>"
        href = self._segment_href(segment)
        if href is not None:
            content = f'<a href="{escape(href)}">{content}</a>'
        return content

    def _segment_href(self, segment: RichText) -> str | None:
        if segment.mention_page_id is not None:
            resolved = self.resolve_page_link(segment.mention_page_id)
            if resolved is None:
                logger.debug("リンク表に存在しないページへの言及です: %s", segment.mention_page_id)
            return resolved
        if not segment.href:
            return None
        target = _notion_page_id(segment.href)
        if target is not None:
            resolved = self.resolve_page_link(target)
            if resolved is not None:
                return resolved
        return segment.href


def _notion_page_id(href: str) -> str | None:
    parsed = urlparse(href)
    host = parsed.netloc.lower()
    if host and not host.endswith(_NOTION_HOSTS):
        return None
    segment = PurePosixPath(parsed.path).name.replace("-", "").lower()
    match = _TRAILING_ID.search(segment)
    return match.group(1) if match else None


def collect_page_ids(pages: Iterable[Page]) -> frozenset[str]:
    return frozenset(page.id for page in pages)
