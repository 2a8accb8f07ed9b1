"""ページ集合をリンク表・日付インデックス・スラッグページ一覧に分割します。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Iterable, Mapping

from .errors import DuplicateDateError, DuplicateSlugError
from .identifiers import DateIdentifier, resolve_identifier
from .models import Page
from .temporal import TemporalIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Partition:
    """1 回のビルドで共有される読み取り専用の構造体。"""

    link_table: Mapping[str, str]
    index: TemporalIndex
    slug_pages: tuple[tuple[str, Page], ...]


def partition_pages(pages: Iterable[Page], *, allow_date_collisions: bool = False) -> Partition:
    """全ページを一度だけ走査して Partition を構築します。

    いずれかのページの分類に失敗した場合は最初の例外をそのまま送出し、
    途中まで構築した構造体は外に出しません。
    """

    link_table: dict[str, str] = {}
    dated: dict[date, Page] = {}
    slug_pages: list[tuple[str, Page]] = []
    slug_owners: dict[str, str] = {}

    for page in pages:
        path, identifier = resolve_identifier(page)
        if isinstance(identifier, DateIdentifier):
            existing = dated.get(identifier.date)
            if existing is not None:
                if not allow_date_collisions:
                    raise DuplicateDateError(page.id, identifier.date, existing.id)
                logger.warning(
                    "日付 %s のページが重複しています。後のページ %s で %s を置き換えます。",
                    identifier.date.isoformat(),
                    page.id,
                    existing.id,
                )
            dated[identifier.date] = page
        else:
            key = identifier.slug.casefold()
            if key in slug_owners:
                raise DuplicateSlugError(page.id, identifier.slug, slug_owners[key])
            slug_owners[key] = page.id
            slug_pages.append((identifier.slug, page))
        link_table[page.id] = path

    return Partition(
        link_table=MappingProxyType(link_table),
        index=TemporalIndex(dated.items()),
        slug_pages=tuple(slug_pages),
    )
