"""Notion API のレスポンスを表す不変データモデル群。"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Any, Mapping, Sequence

PROPERTY_NAMES = ("name", "date", "url", "description", "published")


def normalize_id(raw: str) -> str:
    """Notion の UUID をハイフンなしの小文字 32 桁に正規化します。"""

    return raw.replace("-", "").strip().lower()


def parse_timestamp(raw: str) -> datetime:
    """RFC 3339 形式のタイムスタンプをタイムゾーン付き datetime に変換します。"""

    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_date_or_datetime(raw: str) -> date | datetime:
    value = raw.strip()
    if len(value) == 10:
        return date.fromisoformat(value)
    return parse_timestamp(value)


@dataclass(frozen=True, slots=True)
class Annotations:
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    underline: bool = False
    code: bool = False
    color: str = "default"

    @classmethod
    def from_api(cls, payload: Mapping[str, Any] | None) -> "Annotations":
        if not payload:
            return cls()
        return cls(
            bold=bool(payload.get("bold")),
            italic=bool(payload.get("italic")),
            strikethrough=bool(payload.get("strikethrough")),
            underline=bool(payload.get("underline")),
            code=bool(payload.get("code")),
            color=str(payload.get("color") or "default"),
        )


@dataclass(frozen=True, slots=True)
class RichText:
    """リッチテキストの 1 セグメント。"""

    plain_text: str
    kind: str = "text"
    href: str | None = None
    annotations: Annotations = field(default_factory=Annotations)
    mention_page_id: str | None = None
    expression: str | None = None

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "RichText":
        kind = str(payload.get("type") or "text")
        mention_page_id: str | None = None
        expression: str | None = None
        href = payload.get("href")
        if kind == "text":
            link = (payload.get("text") or {}).get("link") or {}
            href = link.get("url") or href
        elif kind == "mention":
            mention = payload.get("mention") or {}
            if mention.get("type") == "page":
                mention_page_id = normalize_id((mention.get("page") or {}).get("id", ""))
        elif kind == "equation":
            expression = (payload.get("equation") or {}).get("expression")
        return cls(
            plain_text=str(payload.get("plain_text") or ""),
            kind=kind,
            href=href,
            annotations=Annotations.from_api(payload.get("annotations")),
            mention_page_id=mention_page_id or None,
            expression=expression,
        )

    @classmethod
    def plain(cls, text: str) -> "RichText":
        return cls(plain_text=text)


def rich_text_from_api(items: Sequence[Mapping[str, Any]] | None) -> tuple[RichText, ...]:
    return tuple(RichText.from_api(item) for item in items or ())


def plain_text(rich_text: Sequence[RichText]) -> str:
    """リッチテキストを装飾なしの文字列に連結します。"""

    return "".join(segment.plain_text for segment in rich_text)


@dataclass(frozen=True, slots=True)
class NotionDate:
    """Notion の日付プロパティ。start は日付または日時です。"""

    start: date | datetime
    end: date | datetime | None = None

    @property
    def has_time(self) -> bool:
        return isinstance(self.start, datetime)

    @property
    def calendar_date(self) -> date:
        if isinstance(self.start, datetime):
            return self.start.date()
        return self.start

    def as_utc_datetime(self) -> datetime:
        """日付のみの場合は UTC の 0 時として扱います。"""

        if isinstance(self.start, datetime):
            return self.start.astimezone(timezone.utc)
        return datetime.combine(self.start, time.min, tzinfo=timezone.utc)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any] | None) -> "NotionDate | None":
        if not payload or not payload.get("start"):
            return None
        end = payload.get("end")
        return cls(
            start=parse_date_or_datetime(payload["start"]),
            end=parse_date_or_datetime(end) if end else None,
        )


@dataclass(frozen=True, slots=True)
class FileRef:
    """カバー画像などのファイル参照。kind は "external" または "file" です。"""

    kind: str
    url: str

    @property
    def is_hosted(self) -> bool:
        return self.kind == "file"

    @classmethod
    def from_api(cls, payload: Mapping[str, Any] | None) -> "FileRef | None":
        if not payload:
            return None
        kind = str(payload.get("type") or "external")
        url = (payload.get(kind) or {}).get("url")
        if not url:
            return None
        return cls(kind=kind, url=url)


@dataclass(frozen=True, slots=True)
class Block:
    """Notion のブロック。data は種類ごとのペイロードをそのまま保持します。"""

    id: str
    type: str
    data: Mapping[str, Any] = field(default_factory=dict)
    children: tuple["Block", ...] = ()

    @property
    def rich_text(self) -> tuple[RichText, ...]:
        return rich_text_from_api(self.data.get("rich_text", self.data.get("text")))

    @classmethod
    def from_api(cls, payload: Mapping[str, Any], children: Sequence["Block"] = ()) -> "Block":
        kind = str(payload.get("type") or "unsupported")
        return cls(
            id=normalize_id(str(payload.get("id") or "")),
            type=kind,
            data=dict(payload.get(kind) or {}),
            children=tuple(children),
        )


@dataclass(frozen=True, slots=True)
class Page:
    """日記の 1 ページ。ジェネレーターは読み取りのみ行います。"""

    id: str
    title: tuple[RichText, ...] = ()
    description: tuple[RichText, ...] = ()
    date: NotionDate | None = None
    url: tuple[RichText, ...] = ()
    published: NotionDate | None = None
    cover: FileRef | None = None
    last_edited_time: datetime = datetime(1970, 1, 1, tzinfo=timezone.utc)
    children: tuple[Block, ...] = ()

    @property
    def slug(self) -> str:
        return plain_text(self.url).strip()

    @property
    def title_text(self) -> str:
        return plain_text(self.title)

    @property
    def description_text(self) -> str:
        return plain_text(self.description)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any], children: Sequence[Block] = ()) -> "Page":
        properties = _normalize_properties(payload.get("properties") or {})
        return cls(
            id=normalize_id(str(payload["id"])),
            title=rich_text_from_api((properties.get("name") or {}).get("title")),
            description=rich_text_from_api((properties.get("description") or {}).get("rich_text")),
            date=NotionDate.from_api((properties.get("date") or {}).get("date")),
            url=rich_text_from_api((properties.get("url") or {}).get("rich_text")),
            published=NotionDate.from_api((properties.get("published") or {}).get("date")),
            cover=FileRef.from_api(payload.get("cover")),
            last_edited_time=parse_timestamp(payload.get("last_edited_time") or "1970-01-01T00:00:00Z"),
            children=tuple(children),
        )


def _normalize_properties(properties: Mapping[str, Any]) -> dict[str, Any]:
    # プロパティ名は大文字小文字を区別せずに照合する
    lowered = {str(name).casefold(): value for name, value in properties.items()}
    return {name: lowered.get(name) for name in PROPERTY_NAMES}
