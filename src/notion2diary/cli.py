"""notion2diary のコマンドラインインターフェース。"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Iterable

from .builder import fetch_and_build
from .config import BuildConfig
from .env import DATABASE_ID_ENV, NOTION_TOKEN_ENV, current_notion_settings, load_env_file
from .errors import BuildError, DiaryError


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Notion データベースから日記サイトを生成します。")
    parser.add_argument(
        "database_id",
        nargs="?",
        default=None,
        help=f"Notion データベース ID (省略時は環境変数 {DATABASE_ID_ENV} を使用)",
    )
    parser.add_argument(
        "--project",
        dest="project_dir",
        type=Path,
        default=Path.cwd(),
        help="config.json・partials/・pages/・public/ を含むプロジェクトディレクトリ",
    )
    parser.add_argument(
        "--out",
        dest="output_dir",
        type=Path,
        default=None,
        help="出力ディレクトリ (既定はプロジェクト配下の output/)",
    )
    parser.add_argument("--verbose", action="store_true", help="詳細ログを表示")
    parser.add_argument(
        "--no-katex",
        dest="download_katex",
        action="store_false",
        help="KaTeX アセットをダウンロードしない",
    )
    parser.add_argument(
        "--allow-date-collisions",
        action="store_true",
        help="同じ日付のページが複数ある場合にエラーにせず後のページを採用する",
    )
    parser.add_argument(
        "--summary",
        dest="summary_path",
        type=Path,
        default=None,
        help="ビルドの進捗を JSON Lines で書き出すファイル",
    )
    parser.add_argument(
        "--env-file",
        dest="env_file",
        type=Path,
        default=None,
        help=".env ファイルのパス (既定はカレントディレクトリの .env)",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)
    load_env_file(args.env_file, project_dir=args.project_dir)
    settings = current_notion_settings()
    if args.database_id is None:
        args.database_id = settings.database_id
    _validate_args(args, token=settings.token)
    _configure_logging(args.verbose)

    try:
        config = BuildConfig.from_args(
            args.project_dir,
            args.output_dir,
            download_katex=args.download_katex,
            allow_date_collisions=args.allow_date_collisions,
            summary_path=args.summary_path,
        )
        result = asyncio.run(fetch_and_build(config, settings.token or "", args.database_id))
    except BuildError as exc:
        print(f"[エラー] {exc.first}", file=sys.stderr)
        if len(exc.failures) > 1:
            print(f"ほかに {len(exc.failures) - 1} 件のエラーがあります。", file=sys.stderr)
        raise SystemExit(1)
    except DiaryError as exc:
        print(f"[エラー] {exc}", file=sys.stderr)
        raise SystemExit(1)

    summary = {
        "pages": result.pages,
        "dated_pages": result.dated_pages,
        "slug_pages": result.slug_pages,
        "written": len(result.written),
        "media": result.media,
        "output": str(config.output.root),
    }
    print(json.dumps(summary, ensure_ascii=False))


def _validate_args(args: argparse.Namespace, *, token: str | None) -> None:
    errors: list[str] = []
    if not token:
        errors.append(f"[エラー] 環境変数 {NOTION_TOKEN_ENV} に Notion のトークンを設定してください。")
    if not args.database_id:
        errors.append(
            f"[エラー] データベース ID を引数または環境変数 {DATABASE_ID_ENV} で指定してください。"
        )
    if not args.project_dir.exists():
        errors.append(f"[エラー] プロジェクトディレクトリが見つかりません: {args.project_dir}")
    elif not args.project_dir.is_dir():
        errors.append(f"[エラー] プロジェクトパスはディレクトリではありません: {args.project_dir}")
    if args.output_dir is not None and args.output_dir.exists() and not args.output_dir.is_dir():
        errors.append(f"[エラー] 出力パスがディレクトリではありません: {args.output_dir}")

    if errors:
        for message in errors:
            print(message, file=sys.stderr)
        raise SystemExit(2)

    args.project_dir = args.project_dir.resolve()
    if args.output_dir is not None:
        args.output_dir = args.output_dir.resolve()


def _configure_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(asctime)s [%(levelname)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


if __name__ == "__main__":
    main()
