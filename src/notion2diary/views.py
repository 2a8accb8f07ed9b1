"""ビューの共通部品。サイト全体の文脈、記事のレンダリング、ビューの書き込み。"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import AbstractSet, Any, Callable, Iterable

from jinja2 import Environment
from markupsafe import Markup

from .config import OutputConfig, SiteConfig
from .errors import DiaryError, ViewError
from .models import Page
from .partition import Partition
from .rendering import Downloadables, HeadingAnchors, HtmlRenderer
from .tasks import run_to_completion
from .templates import Partials, template_environment

logger = logging.getLogger(__name__)

FEED_FILE = "feed.xml"


@dataclass(frozen=True, slots=True)
class View:
    """出力する 1 ファイル分の文書。"""

    path: Path
    document: str


@dataclass(frozen=True, slots=True)
class PendingView:
    """まだレンダリングしていないビュー。render はタスク内で呼び出されます。"""

    path: Path
    render: Callable[[], str]


@dataclass(frozen=True, slots=True)
class ArticleEntry:
    page_id: str
    title: str
    heading: Markup
    date: date | None
    cover: str | None
    body: Markup


@dataclass(frozen=True, slots=True)
class SummaryEntry:
    href: str
    title: Markup
    date: date | None
    description: str


@dataclass(slots=True)
class SiteContext:
    """1 回のビルドで全ジョブが共有する読み取り専用の文脈。

    downloadables だけはレンダリング中に追記されます。
    """

    partition: Partition
    site: SiteConfig
    partials: Partials
    output: OutputConfig
    downloadables: Downloadables = field(default_factory=Downloadables)
    environment: Environment = field(default_factory=template_environment)
    today: date = field(default_factory=lambda: datetime.now(timezone.utc).date())
    _claimed: set[Path] = field(default_factory=set, init=False, repr=False)

    @property
    def feed_url(self) -> str | None:
        return self.site.absolute_url(FEED_FILE)

    def renderer(
        self,
        current_pages: AbstractSet[str] = frozenset(),
        heading_anchors: HeadingAnchors = HeadingAnchors.AFTER,
    ) -> HtmlRenderer:
        return HtmlRenderer(
            self.partition.link_table,
            current_pages=current_pages,
            downloadables=self.downloadables,
            heading_anchors=heading_anchors,
        )

    def route_path(self, route: str) -> Path:
        return self.output.html_path(route)

    def render_template(self, name: str, *, route: str | None = None, **context: Any) -> str:
        context.setdefault("title", None)
        context.setdefault("description", None)
        context.setdefault("image", None)
        context["url"] = self.site.absolute_url(route) if route is not None else None
        context["feed_url"] = self.feed_url
        template = self.environment.get_template(name)
        return template.render(site=self.site, partials=self.partials, **context)

    def claim(self, path: Path) -> None:
        """出力パスを予約します。

        `..` を含む別名は正規化してから比較します。出力ディレクトリの外を指すパスと、
        同じファイルへの 2 回目の書き込みはエラーです。
        """

        normalized = Path(os.path.normpath(path))
        root = Path(os.path.normpath(self.output.root))
        if root not in normalized.parents:
            raise DiaryError(f"出力ディレクトリの外には書き込めません: {path}")
        if normalized in self._claimed:
            raise DiaryError(f"同じ出力パスに複数のビューが書き込もうとしました: {path}")
        self._claimed.add(normalized)


def is_published(page: Page, today: date) -> bool:
    """公開日が today 以前のページだけを公開済みとみなします。未来の公開日は予約投稿です。"""

    if page.published is None:
        return False
    return page.published.as_utc_datetime().date() <= today


def entry_date(page: Page) -> date | None:
    """記事に表示する日付。エントリ日付がなければ公開日を使います。"""

    if page.date is not None:
        return page.date.calendar_date
    if page.published is not None:
        return page.published.calendar_date
    return None


def render_article(renderer: HtmlRenderer, page: Page) -> ArticleEntry:
    return ArticleEntry(
        page_id=page.id,
        title=page.title_text,
        heading=renderer.render_heading(page.id, 1, page.title),
        date=entry_date(page),
        cover=renderer.cover_src(page.id, page.cover),
        body=renderer.render_blocks(page.children, page.id),
    )


def summarize(renderer: HtmlRenderer, href: str, page: Page, when: date | None) -> SummaryEntry:
    return SummaryEntry(
        href=href,
        title=renderer.render_rich_text(page.title),
        date=when,
        description=page.description_text,
    )


async def write_view(view: View) -> Path:
    def _write() -> None:
        view.path.parent.mkdir(parents=True, exist_ok=True)
        view.path.write_text(view.document, encoding="utf-8")

    await asyncio.to_thread(_write)
    logger.debug("ビューを書き込みました: %s", view.path)
    return view.path


async def emit_view(context: SiteContext, pending: PendingView) -> Path:
    """1 つのビューをレンダリングして書き込みます。失敗は ViewError に包みます。"""

    try:
        context.claim(pending.path)
        view = View(path=pending.path, document=pending.render())
        return await write_view(view)
    except ViewError:
        raise
    except Exception as exc:
        raise ViewError(pending.path, exc) from exc


async def emit_views(context: SiteContext, pending: Iterable[PendingView]) -> list[Path]:
    """ビューごとにタスクを起動し、全タスクの完了後に最初の失敗を送出します。"""

    written, failures = await run_to_completion(emit_view(context, item) for item in pending)
    if failures:
        for extra in failures[1:]:
            logger.error("%s", extra)
        raise failures[0]
    return written
