"""年・月・日のアーカイブページとスラッグページの生成。"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from functools import partial
from typing import Mapping, Sequence

from markupsafe import Markup

from .identifiers import format_month, format_year
from .models import Page
from .rendering import HtmlRenderer, collect_page_ids
from .temporal import TemporalIndex
from .templates import month_name
from .views import PendingView, SiteContext, render_article

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True, slots=True)
class PagingLink:
    label: str
    href: str
    title: Markup
    date: date


@dataclass(frozen=True, slots=True)
class Paging:
    previous: PagingLink | None = None
    next: PagingLink | None = None


def paging_labels(current: date, previous: date | None, following: date | None) -> tuple[str | None, str | None]:
    """前後のエントリに付けるラベル。隣接する日付なら Yesterday/Tomorrow になります。"""

    before = None
    if previous is not None:
        before = "Yesterday:" if previous + ONE_DAY == current else "Previously:"
    after = None
    if following is not None:
        after = "Tomorrow:" if current + ONE_DAY == following else "Next up:"
    return before, after


def build_paging(
    renderer: HtmlRenderer,
    index: TemporalIndex,
    link_table: Mapping[str, str],
    current: date,
) -> Paging | None:
    previous = index.before(current)
    following = index.after(current)
    if previous is None and following is None:
        return None
    before, after = paging_labels(
        current,
        previous[0] if previous else None,
        following[0] if following else None,
    )

    def link(label: str | None, entry: tuple[date, Page] | None) -> PagingLink | None:
        if entry is None or label is None:
            return None
        entry_date, page = entry
        return PagingLink(
            label=label,
            href=link_table[page.id],
            title=renderer.render_rich_text(page.title),
            date=entry_date,
        )

    return Paging(previous=link(before, previous), next=link(after, following))


def year_views(context: SiteContext) -> list[PendingView]:
    index = context.partition.index
    views = []
    for year in index.years():
        entries = index.year_range(year)
        if not entries:
            continue
        route = format_year(year)
        views.append(
            PendingView(
                context.route_path(route),
                partial(_render_group, context, f"{year:04d}", route, [page for _, page in entries]),
            )
        )
    return views


def month_views(context: SiteContext) -> list[PendingView]:
    index = context.partition.index
    views = []
    for year, month in index.months():
        entries = index.month_range(year, month)
        if not entries:
            continue
        route = format_month(year, month)
        views.append(
            PendingView(
                context.route_path(route),
                partial(
                    _render_group,
                    context,
                    f"{month_name(month)} {year:04d}",
                    route,
                    [page for _, page in entries],
                ),
            )
        )
    return views


def day_views(context: SiteContext) -> list[PendingView]:
    link_table = context.partition.link_table
    return [
        PendingView(context.route_path(link_table[page.id]), partial(render_day, context, entry_date, page))
        for entry_date, page in context.partition.index
    ]


def slug_views(context: SiteContext) -> list[PendingView]:
    link_table = context.partition.link_table
    return [
        PendingView(context.route_path(link_table[page.id]), partial(render_single, context, page))
        for _, page in context.partition.slug_pages
    ]


def render_day(context: SiteContext, current: date, page: Page) -> str:
    renderer = context.renderer(collect_page_ids([page]))
    entry = render_article(renderer, page)
    nav = build_paging(renderer, context.partition.index, context.partition.link_table, current)
    return context.render_template(
        "page.html",
        route=context.partition.link_table[page.id],
        title=page.title_text,
        description=page.description_text,
        image=_absolute_image(context, entry.cover),
        entry=entry,
        nav=nav,
    )


def render_single(context: SiteContext, page: Page) -> str:
    renderer = context.renderer(collect_page_ids([page]))
    entry = render_article(renderer, page)
    return context.render_template(
        "page.html",
        route=context.partition.link_table[page.id],
        title=page.title_text,
        description=page.description_text,
        image=_absolute_image(context, entry.cover),
        entry=entry,
        nav=None,
    )


# Internal helpers -------------------------------------------------


def _render_group(context: SiteContext, title: str, route: str, pages: Sequence[Page]) -> str:
    renderer = context.renderer(collect_page_ids(pages))
    articles = [render_article(renderer, page) for page in pages]
    return context.render_template(
        "archive.html",
        route=route,
        title=title,
        description=context.site.description,
        image=_absolute_image(context, context.site.cover),
        articles=articles,
    )


def _absolute_image(context: SiteContext, src: str | None) -> str | None:
    if src is None:
        return None
    return context.site.absolute_url(src) or src
