from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from pathlib import Path

from lxml import etree

from notion2diary.config import AuthorConfig, OutputConfig, SiteConfig
from notion2diary.feed import ATOM_NS, compose_feed_items, feed_updated, feed_view, format_timestamp, render_feed
from notion2diary.models import Block, NotionDate, Page, RichText
from notion2diary.partition import partition_pages
from notion2diary.templates import Partials
from notion2diary.views import SiteContext

NS = {"atom": ATOM_NS}
BASE_URL = "https://example.com/"


def _page(
    page_id: str,
    *,
    entry: date | None = None,
    slug: str = "",
    published: date | datetime | None = None,
    edited: datetime | None = None,
    children=(),
) -> Page:
    return Page(
        id=page_id,
        title=(RichText.plain(f"Post {page_id}"),),
        description=(RichText.plain(f"Summary {page_id}"),),
        date=NotionDate(entry) if entry is not None else None,
        url=(RichText.plain(slug),) if slug else (),
        published=NotionDate(published) if published is not None else None,
        last_edited_time=edited or datetime(2021, 12, 1, tzinfo=timezone.utc),
        children=tuple(children),
    )


def _mixed_pages() -> list[Page]:
    return [
        _page("slug-07", slug="seven", published=date(2021, 12, 7), edited=datetime(2021, 12, 7, tzinfo=timezone.utc)),
        _page("slug-09", slug="nine", published=date(2021, 12, 9), edited=datetime(2021, 12, 9, tzinfo=timezone.utc)),
        _page(
            "date-05",
            entry=date(2021, 11, 20),
            published=date(2021, 12, 5),
            edited=datetime(2022, 1, 10, tzinfo=timezone.utc),
        ),
        _page("date-08", entry=date(2021, 11, 21), published=date(2021, 12, 8)),
        _page("draft", entry=date(2021, 11, 22)),
    ]


def _context(tmp_path: Path, pages: list[Page], **site) -> SiteContext:
    return SiteContext(
        partition=partition_pages(pages),
        site=SiteConfig(**site),
        partials=Partials(),
        output=OutputConfig(tmp_path / "out"),
    )


def test_items_are_ordered_by_published_across_page_kinds() -> None:
    items = compose_feed_items(partition_pages(_mixed_pages()))

    assert [item.page.id for item in items] == ["date-05", "slug-07", "date-08", "slug-09"]
    assert [item.published.date() for item in items] == [
        date(2021, 12, 5),
        date(2021, 12, 7),
        date(2021, 12, 8),
        date(2021, 12, 9),
    ]


def test_updated_is_latest_edit_not_latest_publish() -> None:
    items = compose_feed_items(partition_pages(_mixed_pages()))

    assert feed_updated(items) == datetime(2022, 1, 10, tzinfo=timezone.utc)


def test_pages_without_published_are_excluded() -> None:
    partition = partition_pages(_mixed_pages())

    items = compose_feed_items(partition)

    assert "draft" not in {item.page.id for item in items}
    assert "draft" in partition.link_table


def test_scheduled_pages_wait_until_their_publish_date(tmp_path: Path) -> None:
    pages = [
        _page("past", slug="past", published=date(2021, 12, 1)),
        _page("future", slug="future", published=date(2021, 12, 3)),
    ]
    context = _context(tmp_path, pages, url=BASE_URL)
    context.today = date(2021, 12, 2)

    view = feed_view(context)
    root = etree.fromstring(view.render().encode("utf-8"))

    ids = [entry.findtext("atom:id", namespaces=NS) for entry in root.findall("atom:entry", namespaces=NS)]
    assert ids == ["https://example.com/past"]
    assert [item.page.id for item in compose_feed_items(context.partition, date(2021, 12, 3))] == ["past", "future"]


def test_ties_keep_slug_pages_before_date_pages() -> None:
    pages = [
        _page("dated", entry=date(2021, 11, 1), published=date(2021, 12, 1)),
        _page("slugged", slug="post", published=date(2021, 12, 1)),
    ]

    items = compose_feed_items(partition_pages(pages))

    assert [item.page.id for item in items] == ["slugged", "dated"]


def test_dates_are_compared_as_midnight_utc() -> None:
    pages = [
        _page("afternoon", slug="later", published=datetime(2021, 12, 5, 15, 0, tzinfo=timezone.utc)),
        _page("midnight", entry=date(2021, 11, 1), published=date(2021, 12, 5)),
        _page("evening-before", slug="before", published=datetime(2021, 12, 4, 23, 0, tzinfo=timezone.utc)),
    ]

    items = compose_feed_items(partition_pages(pages))

    assert [item.page.id for item in items] == ["evening-before", "midnight", "afternoon"]
    assert format_timestamp(items[1].published) == "2021-12-05T00:00:00Z"


def test_feed_is_skipped_without_base_url(tmp_path: Path, caplog) -> None:
    context = _context(tmp_path, _mixed_pages())

    with caplog.at_level(logging.WARNING, logger="notion2diary.feed"):
        assert feed_view(context) is None

    assert caplog.records


def test_feed_is_skipped_without_published_pages(tmp_path: Path) -> None:
    context = _context(tmp_path, [_page("draft", entry=date(2021, 11, 22))], url=BASE_URL)

    assert feed_view(context) is None


def test_atom_document_shape(tmp_path: Path) -> None:
    context = _context(
        tmp_path,
        _mixed_pages(),
        name="Diary & Notes",
        url=BASE_URL,
        author=AuthorConfig(name="Writer", url="https://example.com/me"),
        icon="/favicon.png",
    )

    view = feed_view(context)
    assert view is not None
    assert view.path == tmp_path / "out" / "feed.xml"
    root = etree.fromstring(view.render().encode("utf-8"))

    assert root.tag == f"{{{ATOM_NS}}}feed"
    assert root.get("{http://www.w3.org/XML/1998/namespace}lang") == "en"
    assert root.findtext("atom:id", namespaces=NS) == BASE_URL
    assert root.findtext("atom:title", namespaces=NS) == "Diary & Notes"
    assert root.findtext("atom:updated", namespaces=NS) == "2022-01-10T00:00:00Z"
    assert root.findtext("atom:author/atom:name", namespaces=NS) == "Writer"
    assert root.findtext("atom:icon", namespaces=NS) == "https://example.com/favicon.png"
    assert root.find("atom:generator", namespaces=NS).get("version")
    links = {link.get("rel"): link.get("href") for link in root.findall("atom:link", namespaces=NS)}
    assert links == {"self": "https://example.com/feed.xml", "alternate": BASE_URL}

    entries = root.findall("atom:entry", namespaces=NS)
    assert [entry.findtext("atom:id", namespaces=NS) for entry in entries] == [
        "https://example.com/2021/11/20",
        "https://example.com/seven",
        "https://example.com/2021/11/21",
        "https://example.com/nine",
    ]
    first = entries[0]
    assert first.findtext("atom:published", namespaces=NS) == "2021-12-05T00:00:00Z"
    assert first.findtext("atom:updated", namespaces=NS) == "2022-01-10T00:00:00Z"
    assert first.findtext("atom:summary", namespaces=NS) == "Summary date-05"
    assert first.find("atom:title", namespaces=NS).get("type") == "html"


def test_entry_content_is_rendered_without_heading_anchors(tmp_path: Path) -> None:
    heading = Block(
        id="heading",
        type="heading_1",
        data={"rich_text": [{"type": "text", "plain_text": "Part <one>", "text": {"content": "Part <one>"}}]},
    )
    pages = [_page("a", entry=date(2021, 11, 1), published=date(2021, 11, 1), children=[heading])]
    context = _context(tmp_path, pages, url=BASE_URL)

    root = etree.fromstring(render_feed(context, compose_feed_items(context.partition)).encode("utf-8"))

    content = root.find("atom:entry/atom:content", namespaces=NS)
    assert content.get("type") == "html"
    assert content.text == '<h2 id="heading">Part &lt;one&gt;</h2>'
