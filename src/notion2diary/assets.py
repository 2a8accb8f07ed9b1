"""静的ファイルのコピー、独立ページの生成、KaTeX アセットの取得。"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
from functools import partial
from pathlib import Path, PurePosixPath

import httpx
from markupsafe import Markup

from .errors import ConfigError, FetchError
from .identifiers import is_reserved_route
from .templates import decode_html
from .views import PendingView, SiteContext

logger = logging.getLogger(__name__)

KATEX_VERSION = "0.16.9"
KATEX_CDN = f"https://cdn.jsdelivr.net/npm/katex@{KATEX_VERSION}/dist/"
KATEX_STYLESHEET = "katex.min.css"
_CSS_URL = re.compile(r"""url\(\s*['"]?([^'")]+?)['"]?\s*\)""")


async def copy_public(public_dir: Path, output_root: Path) -> list[Path]:
    """public/ の中身を出力ディレクトリへそのままコピーします。"""

    if not public_dir.is_dir():
        logger.debug("public ディレクトリがないためコピーを省略します: %s", public_dir)
        return []

    def _copy() -> list[Path]:
        shutil.copytree(public_dir, output_root, dirs_exist_ok=True)
        return [output_root / path.relative_to(public_dir) for path in public_dir.rglob("*") if path.is_file()]

    copied = await asyncio.to_thread(_copy)
    logger.info("静的ファイルを %d 件コピーしました。", len(copied))
    return copied


def page_title(path: Path) -> str:
    stem = path.stem
    return stem[:1].upper() + stem[1:]


def independent_page_views(context: SiteContext, pages_dir: Path) -> list[PendingView]:
    """pages/ の HTML ファイルをビューにします。生成ページと同じパスになる名前は ConfigError です。"""

    if not pages_dir.is_dir():
        return []
    taken = {route.casefold() for route in context.partition.link_table.values()}
    views = []
    for path in sorted(pages_dir.iterdir()):
        if not path.is_file():
            raise ConfigError(path, "pages ディレクトリにはファイルのみを配置してください")
        if path.suffix.lower() != ".html":
            raise ConfigError(path, "pages ディレクトリには HTML ファイルのみを配置してください")
        route = f"/{path.stem}"
        if is_reserved_route(path.stem) or route.casefold() in taken:
            raise ConfigError(path, "独立ページの名前が生成されるページのパスと衝突しています")
        views.append(PendingView(context.route_path(route), partial(render_independent, context, path, route)))
    return views


def render_independent(context: SiteContext, source: Path, route: str) -> str:
    try:
        content = decode_html(source.read_bytes())
    except OSError as exc:
        raise ConfigError(source, f"独立ページを読み込めませんでした ({exc})") from exc
    return context.render_template(
        "independent.html",
        route=route,
        title=page_title(source),
        description=context.site.description,
        content=Markup(content),
    )


def katex_asset_paths(stylesheet: str) -> list[str]:
    """スタイルシートが参照する相対パスのアセットを出現順に重複なく返します。"""

    found: dict[str, None] = {}
    for match in _CSS_URL.finditer(stylesheet):
        target = match.group(1).strip()
        if not target or target.startswith(("data:", "http:", "https:", "/")):
            continue
        if ".." in PurePosixPath(target).parts:
            continue
        found.setdefault(target, None)
    return list(found)


async def download_katex(client: httpx.AsyncClient, katex_dir: Path, *, base_url: str = KATEX_CDN) -> list[Path]:
    """CDN から KaTeX のスタイルシートと参照フォントを取得して katex/ に保存します。"""

    stylesheet = await _fetch(client, base_url + KATEX_STYLESHEET)
    targets = katex_asset_paths(decode_html(stylesheet))

    async def save(relative: str, content: bytes) -> Path:
        destination = katex_dir / relative

        def _write() -> None:
            destination.parent.mkdir(parents=True, exist_ok=True)
            destination.write_bytes(content)

        await asyncio.to_thread(_write)
        return destination

    async def fetch_and_save(relative: str) -> Path:
        return await save(relative, await _fetch(client, base_url + relative))

    saved = [await save(KATEX_STYLESHEET, stylesheet)]
    saved.extend(await asyncio.gather(*(fetch_and_save(relative) for relative in targets)))
    logger.info("KaTeX アセットを %d 件保存しました。", len(saved))
    return saved


async def _fetch(client: httpx.AsyncClient, url: str) -> bytes:
    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        raise FetchError(url, f"取得に失敗しました ({exc})") from exc
    if response.is_error:
        raise FetchError(url, "取得に失敗しました", status=response.status_code)
    return response.content
