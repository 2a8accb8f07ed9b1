"""Notion データベースから日記サイトを生成するパッケージ。"""

__version__ = "0.4.0"
PROJECT_NAME = "notion2diary"
REPOSITORY = "https://github.com/notion2diary/notion2diary"
