"""notion2diary の設定モデル群。"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Mapping, Optional
from urllib.parse import urljoin, urlparse

from .errors import ConfigError

CONFIG_FILE = "config.json"
EXPORT_DIR = "output"
RESERVED_NAMES = frozenset({"index", "articles", "feed", "katex", "media"})


@dataclass(frozen=True, slots=True)
class LocaleConfig:
    """`en_US` 形式のロケールと、そこから導かれる言語コード。"""

    locale: str = "en_US"
    lang: str = "en"

    @classmethod
    def parse(cls, raw: str) -> "LocaleConfig":
        lang, sep, region = raw.partition("_")
        if not lang or not sep or not region:
            raise ValueError(f"ロケールは lang_REGION 形式で指定してください: {raw!r}")
        return cls(locale=raw, lang=lang)


@dataclass(frozen=True, slots=True)
class AuthorConfig:
    name: str
    url: str | None = None


@dataclass(frozen=True, slots=True)
class TwitterConfig:
    site: str | None = None
    creator: str | None = None


@dataclass(frozen=True, slots=True)
class SiteConfig:
    """config.json から読み込むサイト全体の設定。"""

    name: str = "Diary"
    description: str = "A neat diary"
    author: AuthorConfig | None = None
    cover: str | None = None
    icon: str | None = None
    locale: LocaleConfig = field(default_factory=LocaleConfig)
    url: str | None = None
    twitter: TwitterConfig = field(default_factory=TwitterConfig)

    def absolute_url(self, path: str) -> str | None:
        """ベース URL に相対パスを結合します。ベース URL 未設定なら None。"""

        if self.url is None:
            return None
        return urljoin(self.url, path.lstrip("/"))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "SiteConfig":
        kwargs: dict[str, Any] = {}
        for key in ("name", "description", "cover", "icon"):
            if payload.get(key) is not None:
                kwargs[key] = str(payload[key])
        author = payload.get("author")
        if isinstance(author, str):
            kwargs["author"] = AuthorConfig(name=author)
        elif isinstance(author, Mapping):
            if not author.get("name"):
                raise ValueError("author.name は必須です。")
            url = author.get("url")
            kwargs["author"] = AuthorConfig(name=str(author["name"]), url=_normalize_url(url) if url else None)
        elif author is not None:
            raise ValueError("author には文字列またはオブジェクトを指定してください。")
        if payload.get("locale") is not None:
            kwargs["locale"] = LocaleConfig.parse(str(payload["locale"]))
        if payload.get("url") is not None:
            kwargs["url"] = _normalize_url(str(payload["url"]))
        twitter = payload.get("twitter")
        if isinstance(twitter, Mapping):
            kwargs["twitter"] = TwitterConfig(site=twitter.get("site"), creator=twitter.get("creator"))
        elif twitter is not None:
            raise ValueError("twitter にはオブジェクトを指定してください。")
        unknown = set(payload) - {"name", "description", "author", "cover", "icon", "locale", "url", "twitter"}
        if unknown:
            raise ValueError(f"未知の設定キーがあります: {', '.join(sorted(unknown))}")
        return cls(**kwargs)

    @classmethod
    def load(cls, path: Path) -> "SiteConfig":
        """config.json を読み込みます。ファイルが存在しない場合は既定値を返します。"""

        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return cls()
        except OSError as exc:
            raise ConfigError(path, f"config.json を読み込めませんでした ({exc})") from exc
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ConfigError(path, f"config.json の解析に失敗しました ({exc.msg})") from exc
        if not isinstance(payload, dict):
            raise ConfigError(path, "config.json には JSON オブジェクトを指定してください")
        try:
            return cls.from_mapping(payload)
        except ValueError as exc:
            raise ConfigError(path, f"config.json の値が不正です ({exc})") from exc


@dataclass(slots=True)
class OutputConfig:
    """出力ディレクトリの設定。"""

    root: Path
    katex_dir: Path = field(init=False)
    media_dir: Path = field(init=False)

    def __post_init__(self) -> None:
        self.katex_dir = self.root / "katex"
        self.media_dir = self.root / "media"

    def html_path(self, route: str) -> Path:
        """`/2021/11/07` のようなルートを出力先の HTML ファイルパスに変換します。"""

        return self.root / f"{route.strip('/')}.html"


@dataclass(slots=True)
class BuildConfig:
    """サイト生成全体を束ねる設定。"""

    project_dir: Path
    output: OutputConfig
    site: SiteConfig = field(default_factory=SiteConfig)
    download_katex: bool = True
    allow_date_collisions: bool = False
    summary_path: Path | None = None
    today: date | None = None

    @property
    def partials_dir(self) -> Path:
        return self.project_dir / "partials"

    @property
    def pages_dir(self) -> Path:
        return self.project_dir / "pages"

    @property
    def public_dir(self) -> Path:
        return self.project_dir / "public"

    @classmethod
    def from_args(
        cls,
        project_dir: Path,
        output_dir: Optional[Path] = None,
        download_katex: bool = True,
        allow_date_collisions: bool = False,
        summary_path: Optional[Path] = None,
    ) -> "BuildConfig":
        site = SiteConfig.load(project_dir / CONFIG_FILE)
        return cls(
            project_dir=project_dir,
            output=OutputConfig(output_dir if output_dir is not None else project_dir / EXPORT_DIR),
            site=site,
            download_katex=download_katex,
            allow_date_collisions=allow_date_collisions,
            summary_path=summary_path,
        )


def _normalize_url(raw: str) -> str:
    parsed = urlparse(raw.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise ValueError(f"絶対 URL を指定してください: {raw!r}")
    # 相対パスの結合で最後のセグメントが失われないよう末尾をスラッシュにそろえる
    path = parsed.path if parsed.path.endswith("/") else parsed.path + "/"
    return parsed._replace(path=path).geturl()
