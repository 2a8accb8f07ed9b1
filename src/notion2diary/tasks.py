"""独立したタスクを最後まで実行し、失敗を完了順に集めるヘルパー。"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Iterable, TypeVar

T = TypeVar("T")


async def run_to_completion(awaitables: Iterable[Awaitable[T]]) -> tuple[list[T], list[Exception]]:
    """全タスクを並行に実行します。

    どれかが失敗しても他のタスクはキャンセルせずに完了まで待ちます。
    戻り値は (成功したタスクの結果をタスク順に並べたもの, 失敗を観測順に並べたもの) です。
    """

    tasks = [asyncio.ensure_future(item) for item in awaitables]
    if not tasks:
        return [], []
    failures: list[Exception] = []
    for finished in asyncio.as_completed(tasks):
        try:
            await finished
        except Exception as exc:
            failures.append(exc)
    results = [task.result() for task in tasks if task.exception() is None]
    return results, failures
