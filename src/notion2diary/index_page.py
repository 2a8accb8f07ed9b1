"""トップページ (index.html) の年 → 月 → エントリの入れ子構造を組み立てます。"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from itertools import groupby
from typing import Iterable, Iterator, Mapping

from .identifiers import format_month, format_year
from .rendering import HtmlRenderer
from .temporal import TemporalIndex
from .views import PendingView, SiteContext, SummaryEntry, summarize

INDEX_ROUTE = "/index"


@dataclass(frozen=True, slots=True)
class IndexMonth:
    year: int
    month: int
    entries: tuple[SummaryEntry, ...]

    @property
    def href(self) -> str:
        return format_month(self.year, self.month)


@dataclass(frozen=True, slots=True)
class IndexYear:
    year: int
    months: tuple[IndexMonth, ...]

    @property
    def href(self) -> str:
        return format_year(self.year)


def index_entries(
    renderer: HtmlRenderer,
    index: TemporalIndex,
    link_table: Mapping[str, str],
) -> Iterator[SummaryEntry]:
    """日付の降順にサマリーを生成します。"""

    for entry_date, page in reversed(index):
        yield summarize(renderer, link_table[page.id], page, entry_date)


def coalesce(entries: Iterable[SummaryEntry]) -> list[IndexYear]:
    """隣接する同じ年月のエントリをまとめます。並べ替えは行いません。"""

    months = [
        IndexMonth(year=year, month=month, entries=tuple(run))
        for (year, month), run in groupby(entries, key=_month_key)
    ]
    return [
        IndexYear(year=year, months=tuple(run))
        for year, run in groupby(months, key=lambda item: item.year)
    ]


def index_view(context: SiteContext) -> PendingView:
    return PendingView(context.route_path(INDEX_ROUTE), partial(render_index, context))


def render_index(context: SiteContext) -> str:
    renderer = context.renderer()
    years = coalesce(index_entries(renderer, context.partition.index, context.partition.link_table))
    return context.render_template(
        "index.html",
        route="/",
        description=context.site.description,
        image=context.site.absolute_url(context.site.cover) if context.site.cover else None,
        years=years,
    )


def _month_key(entry: SummaryEntry) -> tuple[int, int]:
    return entry.date.year, entry.date.month
