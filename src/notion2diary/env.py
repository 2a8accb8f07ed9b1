"""`.env` ファイルと環境変数から Notion の接続情報を読み取ります。"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Mapping

DEFAULT_ENV_NAME = ".env"
NOTION_TOKEN_ENV = "NOTION_TOKEN"
DATABASE_ID_ENV = "NOTION2DIARY_DATABASE_ID"


@dataclass(slots=True)
class NotionSettings:
    token: str | None
    database_id: str | None


def parse_env_line(raw_line: str) -> tuple[str, str] | None:
    """`KEY=value` 形式の 1 行を解析します。コメントや不正な行は None。"""

    line = raw_line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#"):
        return None
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key or " " in key:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    return key, value


def load_env_file(path: str | Path | None = None, *, project_dir: Path | None = None) -> dict[str, str]:
    """`.env` を読み込み、まだ設定されていない環境変数だけを補完します。

    path を省略した場合はプロジェクトディレクトリ、カレントディレクトリの順に探します。
    読み込んだキーと値を (既存の環境変数で上書きされなかったものも含めて) 返します。
    """

    env_path = next(_candidates(path, project_dir), None)
    if env_path is None:
        return {}
    loaded: dict[str, str] = {}
    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        pair = parse_env_line(raw_line)
        if pair is None:
            continue
        key, value = pair
        os.environ.setdefault(key, value)
        loaded[key] = value
    return loaded


def current_notion_settings(source: Mapping[str, str] | None = None) -> NotionSettings:
    env = os.environ if source is None else source
    return NotionSettings(
        token=env.get(NOTION_TOKEN_ENV) or None,
        database_id=env.get(DATABASE_ID_ENV) or None,
    )


def _candidates(path: str | Path | None, project_dir: Path | None) -> Iterator[Path]:
    if path is not None:
        explicit = Path(path)
        if explicit.is_dir():
            explicit = explicit / DEFAULT_ENV_NAME
        if explicit.is_file():
            yield explicit
        return
    for directory in (project_dir, Path.cwd()):
        if directory is not None and (directory / DEFAULT_ENV_NAME).is_file():
            yield directory / DEFAULT_ENV_NAME
