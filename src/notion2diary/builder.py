"""ページ集合から日記サイト全体を生成する中核オーケストレーター。"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

import httpx

from .archives import day_views, month_views, slug_views, year_views
from .articles import articles_view
from .assets import copy_public, download_katex, independent_page_views
from .config import BuildConfig
from .errors import BuildError
from .feed import feed_view
from .index_page import index_view
from .models import Page
from .notion import NotionClient
from .partition import partition_pages
from .tasks import run_to_completion
from .templates import load_partials
from .views import PendingView, SiteContext, emit_views

DEFAULT_HTTP_TIMEOUT = 60.0


@dataclass(slots=True)
class BuildResult:
    pages: int
    dated_pages: int
    slug_pages: int
    written: list[Path] = field(default_factory=list)
    media: int = 0


class DiaryBuilder:
    """分類・ビュー生成・アセット取得を統括する高レベルパイプライン。"""

    def __init__(self, config: BuildConfig, *, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self._client = client
        self._logger = logging.getLogger(self.__class__.__module__ + "." + self.__class__.__name__)
        self._summary_base = {
            "project_dir": str(config.project_dir),
            "output_dir": str(config.output.root),
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        self._summary_path = config.summary_path

    async def build(self, pages: Sequence[Page]) -> BuildResult:
        self._logger.info("ページを %d 件受け取りました。", len(pages))
        # 分類に失敗した場合はサマリーを含めて何も書き込まない
        partition = partition_pages(pages, allow_date_collisions=self.config.allow_date_collisions)
        self._prepare_summary()
        self._update_summary("discovered", pages=len(pages))
        self._update_summary(
            "partitioned",
            dated_pages=len(partition.index),
            slug_pages=len(partition.slug_pages),
        )
        self._logger.info(
            "分類が完了しました (日付ページ %d 件, スラッグページ %d 件)。",
            len(partition.index),
            len(partition.slug_pages),
        )

        try:
            partials = load_partials(self.config.partials_dir)
        except Exception as exc:
            self._update_summary("failed", error=str(exc))
            raise
        context = SiteContext(
            partition=partition,
            site=self.config.site,
            partials=partials,
            output=self.config.output,
        )
        if self.config.today is not None:
            context.today = self.config.today
        try:
            independent = independent_page_views(context, self.config.pages_dir)
        except Exception as exc:
            self._update_summary("failed", error=str(exc))
            raise

        if self._client is not None:
            written, media = await self._generate(context, self._client, independent)
        else:
            async with httpx.AsyncClient(timeout=DEFAULT_HTTP_TIMEOUT, follow_redirects=True) as client:
                written, media = await self._generate(context, client, independent)

        self._update_summary("completed", written=len(written), media=media)
        self._logger.info("%d 件のファイルを出力しました。", len(written))
        return BuildResult(
            pages=len(pages),
            dated_pages=len(partition.index),
            slug_pages=len(partition.slug_pages),
            written=written,
            media=media,
        )

    # Internal helpers -------------------------------------------------

    async def _generate(
        self, context: SiteContext, client: httpx.AsyncClient, independent: list[PendingView]
    ) -> tuple[list[Path], int]:
        jobs = self._jobs(context, client, independent)
        self._update_summary("generating", jobs=[name for name, _ in jobs])
        results, failures = await run_to_completion(self._run_job(name, job) for name, job in jobs)
        if failures:
            self._update_summary("failed", failures=len(failures), error=str(failures[0]))
            raise BuildError(failures)
        written = [path for paths in results for path in paths]

        try:
            media = await context.downloadables.download_all(client, context.output.media_dir)
        except Exception as exc:
            self._update_summary("failed", failures=1, error=str(exc))
            raise BuildError([exc]) from exc
        if media:
            self._logger.info("メディアを %d 件ダウンロードしました。", media)
        return written, media

    def _jobs(
        self, context: SiteContext, client: httpx.AsyncClient, independent: list[PendingView]
    ) -> list[tuple[str, Callable[[], Awaitable[list[Path]]]]]:
        config = self.config

        def views(factory: Callable[[SiteContext], list[PendingView]]) -> Callable[[], Awaitable[list[Path]]]:
            return lambda: emit_views(context, factory(context))

        def optional_view(
            factory: Callable[[SiteContext], PendingView | None]
        ) -> Callable[[], Awaitable[list[Path]]]:
            def run() -> Awaitable[list[Path]]:
                view = factory(context)
                return emit_views(context, [view] if view is not None else [])

            return run

        jobs: list[tuple[str, Callable[[], Awaitable[list[Path]]]]] = [
            ("years", views(year_views)),
            ("months", views(month_views)),
            ("days", views(day_views)),
            ("slug_pages", views(slug_views)),
            ("index", views(lambda ctx: [index_view(ctx)])),
            ("feed", optional_view(feed_view)),
            ("articles", optional_view(articles_view)),
            ("independent_pages", views(lambda ctx: independent)),
            ("public", lambda: copy_public(config.public_dir, config.output.root)),
        ]
        if config.download_katex:
            jobs.append(("katex", lambda: download_katex(client, config.output.katex_dir)))
        return jobs

    async def _run_job(self, name: str, job: Callable[[], Awaitable[list[Path]]]) -> list[Path]:
        self._logger.debug("ジョブを開始します: %s", name)
        try:
            written = await job()
        except Exception as exc:
            self._logger.error("ジョブ %s が失敗しました: %s", name, exc)
            raise
        self._logger.info("ジョブ %s が完了しました (%d 件)。", name, len(written))
        return written

    def _prepare_summary(self) -> None:
        if self._summary_path is None:
            return
        self._summary_path.parent.mkdir(parents=True, exist_ok=True)
        self._summary_path.write_text("", encoding="utf-8")

    def _update_summary(self, stage: str, **extra: Any) -> None:
        if self._summary_path is None:
            return
        payload = dict(self._summary_base)
        payload.update(extra)
        payload["stage"] = stage
        with self._summary_path.open("a", encoding="utf-8") as stream:
            stream.write(json.dumps(payload, ensure_ascii=False))
            stream.write("\n")


async def fetch_and_build(config: BuildConfig, token: str, database_id: str) -> BuildResult:
    """Notion からページを取得してサイトを生成します。"""

    async with NotionClient(token) as notion:
        pages = await notion.fetch_pages(database_id)
    return await DiaryBuilder(config).build(pages)


def build_site(config: BuildConfig, pages: Sequence[Page]) -> BuildResult:
    builder = DiaryBuilder(config)
    return asyncio.run(builder.build(pages))

