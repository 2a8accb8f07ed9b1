"""公開日時順に並べた Atom フィード (feed.xml) の生成。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from functools import partial
from typing import Sequence

from lxml import etree
from lxml.builder import ElementMaker
from markupsafe import escape

from . import PROJECT_NAME, REPOSITORY, __version__
from .models import Page
from .partition import Partition
from .rendering import HeadingAnchors, collect_page_ids
from .views import FEED_FILE, PendingView, SiteContext, is_published

logger = logging.getLogger(__name__)

ATOM_NS = "http://www.w3.org/2005/Atom"
XML_LANG = "{http://www.w3.org/XML/1998/namespace}lang"

E = ElementMaker(namespace=ATOM_NS, nsmap={None: ATOM_NS})


@dataclass(frozen=True, slots=True)
class FeedItem:
    """フィードの 1 エントリ。published は UTC に正規化済みです。"""

    published: datetime
    route: str
    page: Page


def compose_feed_items(partition: Partition, today: date | None = None) -> list[FeedItem]:
    """スラッグページ、日付ページの順に候補を並べ、公開日時で安定ソートします。

    公開日を持たないページは含めません。日付のみの公開日は UTC の 0 時として扱います。
    today を渡すと、公開日がそれより後のページ (予約投稿) も除外します。
    """

    candidates = [page for _, page in partition.slug_pages]
    candidates.extend(page for _, page in partition.index)
    items = [
        FeedItem(
            published=page.published.as_utc_datetime(),
            route=partition.link_table[page.id],
            page=page,
        )
        for page in candidates
        if page.published is not None and (today is None or is_published(page, today))
    ]
    items.sort(key=lambda item: item.published)
    return items


def feed_updated(items: Sequence[FeedItem]) -> datetime:
    return max(item.page.last_edited_time for item in items)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def feed_view(context: SiteContext) -> PendingView | None:
    """フィードのビュー。ベース URL 未設定または対象ページがなければ None。"""

    if context.site.url is None:
        logger.warning("config.json に url が設定されていないため feed.xml を生成しません。")
        return None
    items = compose_feed_items(context.partition, context.today)
    if not items:
        logger.warning("公開日を持つページがないため feed.xml を生成しません。")
        return None
    return PendingView(context.output.root / FEED_FILE, partial(render_feed, context, items))


def render_feed(context: SiteContext, items: Sequence[FeedItem]) -> str:
    site = context.site
    base = site.url
    renderer = context.renderer(
        collect_page_ids(item.page for item in items),
        heading_anchors=HeadingAnchors.NONE,
    )

    head = [
        E.id(base),
        E.title(site.name),
        E.subtitle(site.description),
        E.updated(format_timestamp(feed_updated(items))),
    ]
    if site.author is not None:
        author = [E.name(site.author.name)]
        if site.author.url:
            author.append(E.uri(site.author.url))
        head.append(E.author(*author))
    head.append(E.generator(PROJECT_NAME, uri=REPOSITORY, version=__version__))
    head.append(E.link(rel="self", type="application/atom+xml", href=context.feed_url))
    head.append(E.link(rel="alternate", type="text/html", href=base))
    if site.icon:
        head.append(E.icon(site.absolute_url(site.icon)))
    if site.cover:
        head.append(E.logo(site.absolute_url(site.cover)))

    entries = []
    for item in items:
        page = item.page
        url = site.absolute_url(item.route)
        content = renderer.render_blocks(page.children, page.id)
        entries.append(
            E.entry(
                E.id(url),
                E.title(str(escape(page.title_text)), type="html"),
                E.link(rel="alternate", type="text/html", href=url),
                E.updated(format_timestamp(page.last_edited_time)),
                E.published(format_timestamp(item.published)),
                E.summary(page.description_text),
                E.content(str(content), type="html"),
            )
        )

    feed = E.feed(*head, *entries)
    feed.set(XML_LANG, site.locale.lang)
    return etree.tostring(feed, xml_declaration=True, encoding="utf-8", pretty_print=True).decode("utf-8")
