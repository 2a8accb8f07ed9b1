from __future__ import annotations

from datetime import date
from pathlib import Path

from bs4 import BeautifulSoup
from markupsafe import Markup

from notion2diary.config import OutputConfig, SiteConfig
from notion2diary.index_page import coalesce, index_entries, index_view
from notion2diary.models import NotionDate, Page, RichText
from notion2diary.partition import partition_pages
from notion2diary.rendering import HtmlRenderer
from notion2diary.templates import Partials
from notion2diary.views import SiteContext, SummaryEntry


def _page(page_id: str, entry: date) -> Page:
    return Page(
        id=page_id,
        title=(RichText.plain(f"Day {page_id}"),),
        description=(RichText.plain(f"Notes for {page_id}"),),
        date=NotionDate(entry),
    )


def _context(tmp_path: Path, pages: list[Page]) -> SiteContext:
    return SiteContext(
        partition=partition_pages(pages),
        site=SiteConfig(name="Diary"),
        partials=Partials(),
        output=OutputConfig(tmp_path / "out"),
    )


def _years(pages: list[Page]):
    partition = partition_pages(pages)
    renderer = HtmlRenderer(partition.link_table)
    return coalesce(index_entries(renderer, partition.index, partition.link_table))


def test_three_days_coalesce_into_one_month() -> None:
    years = _years(
        [
            _page("07", date(2021, 11, 7)),
            _page("09", date(2021, 11, 9)),
            _page("08", date(2021, 11, 8)),
        ]
    )

    assert [year.year for year in years] == [2021]
    (november,) = years[0].months
    assert (november.year, november.month) == (2021, 11)
    assert [entry.href for entry in november.entries] == ["/2021/11/09", "/2021/11/08", "/2021/11/07"]
    assert [entry.date for entry in november.entries] == [date(2021, 11, 9), date(2021, 11, 8), date(2021, 11, 7)]


def test_years_and_months_are_descending() -> None:
    years = _years(
        [
            _page("a", date(2020, 12, 31)),
            _page("b", date(2021, 1, 1)),
            _page("c", date(2021, 2, 1)),
            _page("d", date(2021, 2, 14)),
        ]
    )

    assert [year.year for year in years] == [2021, 2020]
    assert [month.month for month in years[0].months] == [2, 1]
    assert [month.month for month in years[1].months] == [12]
    assert years[0].href == "/2021"
    assert years[0].months[0].href == "/2021/02"


def test_coalesce_merges_only_adjacent_runs() -> None:
    entries = [
        SummaryEntry(href="/a", title=Markup("a"), date=date(2021, 11, 7), description=""),
        SummaryEntry(href="/b", title=Markup("b"), date=date(2021, 12, 1), description=""),
        SummaryEntry(href="/c", title=Markup("c"), date=date(2021, 11, 8), description=""),
    ]

    years = coalesce(entries)

    assert len(years) == 1
    assert [month.month for month in years[0].months] == [11, 12, 11]
    assert [entry.href for month in years[0].months for entry in month.entries] == ["/a", "/b", "/c"]


def test_index_document_nests_years_months_and_summaries(tmp_path: Path) -> None:
    pages = [_page("07", date(2021, 11, 7)), _page("08", date(2021, 11, 8)), _page("09", date(2021, 11, 9))]
    context = _context(tmp_path, pages)

    view = index_view(context)
    soup = BeautifulSoup(view.render(), "html.parser")

    assert view.path == tmp_path / "out" / "index.html"
    years = soup.select("section.year")
    assert [section.h2.get_text() for section in years] == ["2021"]
    months = years[0].select("section.month")
    assert [section.h3.get_text() for section in months] == ["November"]
    summaries = months[0].select("section.summary")
    assert [summary.a["href"] for summary in summaries] == ["/2021/11/09", "/2021/11/08", "/2021/11/07"]
    assert summaries[0].time["datetime"] == "2021-11-09"
    assert summaries[0].p.get_text() == "Notes for 09"


def test_empty_index_renders_an_empty_main(tmp_path: Path) -> None:
    context = _context(tmp_path, [])

    soup = BeautifulSoup(index_view(context).render(), "html.parser")

    assert soup.select("section.year") == []
    assert soup.title.get_text() == "Diary"
    assert soup.main.get_text(strip=True) == ""
