"""ページの識別子 (日付またはスラッグ) と正規パスを決定するユーティリティ。"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Union

from .config import RESERVED_NAMES
from .errors import (
    AmbiguousIdentifierError,
    DateWithTimeError,
    InvalidSlugError,
    MissingIdentifierError,
    ReservedSlugError,
)
from .models import Page

_ARCHIVE_SHAPED = re.compile(r"^\d{4}(/\d{2}(/\d{2})?)?$")
_DAY_PATH = re.compile(r"^/?(\d{4})/(\d{2})/(\d{2})$")


@dataclass(frozen=True, slots=True)
class DateIdentifier:
    """アーカイブ階層に紐づく日付識別子。"""

    date: date


@dataclass(frozen=True, slots=True)
class SlugIdentifier:
    """日付を持たない独立ページのスラッグ識別子。"""

    slug: str


Identifier = Union[DateIdentifier, SlugIdentifier]


def format_year(year: int) -> str:
    return f"/{year:04d}"


def format_month(year: int, month: int) -> str:
    return f"/{year:04d}/{month:02d}"


def format_day(day: date) -> str:
    return f"/{day.year:04d}/{day.month:02d}/{day.day:02d}"


def parse_day_path(path: str) -> date:
    """`format_day` が生成したパスを日付に戻します。"""

    match = _DAY_PATH.match(path)
    if match is None:
        raise ValueError(f"日付パスではありません: {path!r}")
    year, month, day = (int(part) for part in match.groups())
    return date(year, month, day)


def normalize_slug(raw: str) -> str:
    return raw.strip().strip("/")


def is_safe_slug(slug: str) -> bool:
    """出力ディレクトリの外や別のパスを指すセグメントを含まないかを判定します。"""

    if "\\" in slug:
        return False
    return all(segment not in {"", ".", ".."} for segment in slug.split("/"))


def is_reserved_route(name: str) -> bool:
    """予約済みの名前、またはアーカイブと同じ形のパスなら True。"""

    return name.casefold() in RESERVED_NAMES or _ARCHIVE_SHAPED.match(name) is not None


def resolve_identifier(page: Page) -> tuple[str, Identifier]:
    """ページの正規パスと識別子を返します。判定できない場合は ClassificationError を送出します。"""

    entry = page.date.start if page.date is not None else None
    slug = normalize_slug(page.slug)

    if isinstance(entry, datetime):
        raise DateWithTimeError(page.id, entry)
    if entry is not None and slug:
        raise AmbiguousIdentifierError(page.id, entry, slug)
    if entry is None and not slug:
        raise MissingIdentifierError(page.id)
    if entry is not None:
        return format_day(entry), DateIdentifier(entry)
    if not is_safe_slug(slug):
        raise InvalidSlugError(page.id, slug)
    if is_reserved_route(slug):
        raise ReservedSlugError(page.id, slug)
    return f"/{slug}", SlugIdentifier(slug)
