"""notion2diary で送出される例外の階層。"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path
from typing import Sequence


class DiaryError(RuntimeError):
    """notion2diary が送出する例外の基底クラス。"""


class ClassificationError(DiaryError):
    """ページの識別子 (日付またはスラッグ) を決定できない場合の例外。"""

    def __init__(self, page_id: str, message: str) -> None:
        self.page_id = page_id
        super().__init__(f"{message} (page={page_id})")


class DateWithTimeError(ClassificationError):
    def __init__(self, page_id: str, value: datetime) -> None:
        self.value = value
        super().__init__(
            page_id,
            f"日付に時刻を含めることはできません (dates must not carry time): {value.isoformat()}",
        )


class AmbiguousIdentifierError(ClassificationError):
    def __init__(self, page_id: str, entry_date: date, slug: str) -> None:
        self.entry_date = entry_date
        self.slug = slug
        super().__init__(
            page_id,
            "日付と URL の両方が指定されています (ambiguous identifier): "
            f"date={entry_date.isoformat()} url={slug}",
        )


class MissingIdentifierError(ClassificationError):
    def __init__(self, page_id: str) -> None:
        super().__init__(page_id, "日付または URL のいずれかが必要です (missing identifier)")


class ReservedSlugError(ClassificationError):
    def __init__(self, page_id: str, slug: str) -> None:
        self.slug = slug
        super().__init__(page_id, f"予約済みまたはアーカイブ形式のスラッグは使用できません: {slug}")


class InvalidSlugError(ClassificationError):
    def __init__(self, page_id: str, slug: str) -> None:
        self.slug = slug
        super().__init__(page_id, f"スラッグに空・\".\"・\"..\" のセグメントやバックスラッシュは使用できません: {slug}")


class DuplicateDateError(ClassificationError):
    def __init__(self, page_id: str, entry_date: date, existing_page_id: str) -> None:
        self.entry_date = entry_date
        self.existing_page_id = existing_page_id
        super().__init__(
            page_id,
            f"同じ日付 {entry_date.isoformat()} のページが既に存在します (existing={existing_page_id})",
        )


class DuplicateSlugError(ClassificationError):
    def __init__(self, page_id: str, slug: str, existing_page_id: str) -> None:
        self.slug = slug
        self.existing_page_id = existing_page_id
        super().__init__(
            page_id,
            f"同じスラッグ {slug} のページが既に存在します (existing={existing_page_id})",
        )


class ConfigError(DiaryError):
    """設定ファイルやパーシャルを読み込めない場合の例外。"""

    def __init__(self, path: Path, message: str) -> None:
        self.path = path
        super().__init__(f"{message}: {path}")


class FetchError(DiaryError):
    """Notion API や CDN からの取得に失敗した場合の例外。"""

    def __init__(self, url: str, message: str, *, status: int | None = None) -> None:
        self.url = url
        self.status = status
        detail = f" status={status}" if status is not None else ""
        super().__init__(f"{message}: {url}{detail}")


class RenderError(DiaryError):
    """ブロックや日付を HTML に変換できない場合の例外。"""

    def __init__(self, message: str, *, block_id: str | None = None, page_id: str | None = None) -> None:
        self.block_id = block_id
        self.page_id = page_id
        context = ", ".join(
            f"{name}={value}" for name, value in (("block", block_id), ("page", page_id)) if value
        )
        super().__init__(f"{message} ({context})" if context else message)


class ViewError(DiaryError):
    """単一ビューの生成または書き込みに失敗した場合の例外。"""

    def __init__(self, path: Path, cause: BaseException) -> None:
        self.path = path
        super().__init__(f"ビューの生成に失敗しました: {path} ({cause})")


class BuildError(DiaryError):
    """一つ以上のジョブが失敗したビルド全体の例外。"""

    def __init__(self, failures: Sequence[BaseException]) -> None:
        if not failures:
            raise ValueError("failures must not be empty")
        self.failures: tuple[BaseException, ...] = tuple(failures)
        self.first = self.failures[0]
        super().__init__(
            f"ビルドに失敗しました ({len(self.failures)} 件のエラー)。最初のエラー: {self.first}"
        )
