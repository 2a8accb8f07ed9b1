"""公開日を持つスラッグページの一覧 (articles.html)。"""

from __future__ import annotations

from functools import partial

from .models import Page
from .views import PendingView, SiteContext, is_published, summarize

ARTICLES_ROUTE = "/articles"
ARTICLES_TITLE = "Articles"


def published_articles(context: SiteContext) -> list[Page]:
    return [page for _, page in context.partition.slug_pages if is_published(page, context.today)]


def articles_view(context: SiteContext) -> PendingView | None:
    pages = published_articles(context)
    if not pages:
        return None
    return PendingView(context.route_path(ARTICLES_ROUTE), partial(render_articles, context, pages))


def render_articles(context: SiteContext, pages: list[Page]) -> str:
    renderer = context.renderer()
    link_table = context.partition.link_table
    entries = [
        summarize(renderer, link_table[page.id], page, page.published.calendar_date)
        for page in pages
        if page.published is not None
    ]
    return context.render_template(
        "articles.html",
        route=ARTICLES_ROUTE,
        title=ARTICLES_TITLE,
        description=context.site.description,
        entries=entries,
    )
