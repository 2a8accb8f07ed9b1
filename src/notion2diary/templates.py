"""jinja2 テンプレート環境とパーシャル (head/header/footer) の読み込み。"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from pathlib import Path

from charset_normalizer import from_bytes as detect_charset
from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape
from markupsafe import Markup

from .errors import ConfigError

logger = logging.getLogger(__name__)

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
PARTIAL_FILES = ("head.html", "header.html", "footer.html")


def month_name(month: int) -> str:
    return MONTH_NAMES[month - 1]


def readable_date(value: date) -> str:
    """`November 09, 2021` 形式。ロケール設定に依存しないよう月名は固定表を使います。"""

    return f"{month_name(value.month)} {value.day:02d}, {value.year:04d}"


@lru_cache(maxsize=None)
def template_environment() -> Environment:
    environment = Environment(
        loader=PackageLoader("notion2diary", "templates"),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    environment.filters["readable_date"] = readable_date
    environment.filters["month_name"] = month_name
    return environment


@dataclass(frozen=True, slots=True)
class Partials:
    """サイト全体で共有する HTML 断片。存在しないファイルは空文字になります。"""

    head: Markup = field(default_factory=Markup)
    header: Markup = field(default_factory=Markup)
    footer: Markup = field(default_factory=Markup)


def decode_html(data: bytes) -> str:
    """バイト列を文字列に変換します。UTF-8 でなければ文字コードを推定します。"""

    if not data:
        return ""
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        pass
    encoding = "utf-8"
    result = detect_charset(data).best()
    if result is not None and result.encoding:
        encoding = result.encoding
    try:
        return data.decode(encoding, errors="replace")
    except LookupError:
        logger.debug("未知のエンコーディング %s のため UTF-8 フォールバックを使用します。", encoding)
    return data.decode("utf-8", errors="replace")


def read_partial_file(path: Path) -> Markup:
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        return Markup("")
    except OSError as exc:
        raise ConfigError(path, f"パーシャルファイルを読み込めませんでした ({exc})") from exc
    return Markup(decode_html(data))


def load_partials(partials_dir: Path) -> Partials:
    head, header, footer = (read_partial_file(partials_dir / name) for name in PARTIAL_FILES)
    loaded = [name for name, value in zip(PARTIAL_FILES, (head, header, footer)) if value]
    if loaded:
        logger.info("パーシャルを読み込みました: %s", ", ".join(loaded))
    return Partials(head=head, header=header, footer=footer)
