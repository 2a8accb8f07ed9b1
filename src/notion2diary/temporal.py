"""日付をキーとする順序付きインデックスと範囲・近傍クエリ。"""

from __future__ import annotations

from bisect import bisect_left, bisect_right, insort
from datetime import date
from typing import Iterable, Iterator

from .models import Page


def year_bounds(year: int) -> tuple[date, date]:
    """`[year-01-01, (year+1)-01-01)` を返します。"""

    return date(year, 1, 1), date(year + 1, 1, 1)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """`[year-month-01, 翌月1日)` を返します。12 月は翌年 1 月に繰り上がります。"""

    if month == 12:
        return date(year, 12, 1), date(year + 1, 1, 1)
    return date(year, month, 1), date(year, month + 1, 1)


class TemporalIndex:
    """日付昇順に並んだ date -> Page の対応表。

    1 日につき 1 ページのみ保持します。構築後は読み取り専用として扱い、
    複数のジョブから同時に参照されます。
    """

    __slots__ = ("_dates", "_pages")

    def __init__(self, entries: Iterable[tuple[date, Page]] = ()) -> None:
        self._dates: list[date] = []
        self._pages: dict[date, Page] = {}
        for entry_date, page in entries:
            self._insert(entry_date, page)

    def _insert(self, entry_date: date, page: Page) -> None:
        if entry_date not in self._pages:
            insort(self._dates, entry_date)
        self._pages[entry_date] = page

    def __len__(self) -> int:
        return len(self._dates)

    def __bool__(self) -> bool:
        return bool(self._dates)

    def __contains__(self, entry_date: object) -> bool:
        return entry_date in self._pages

    def __iter__(self) -> Iterator[tuple[date, Page]]:
        for entry_date in self._dates:
            yield entry_date, self._pages[entry_date]

    def __reversed__(self) -> Iterator[tuple[date, Page]]:
        for entry_date in reversed(self._dates):
            yield entry_date, self._pages[entry_date]

    def get(self, entry_date: date) -> Page | None:
        return self._pages.get(entry_date)

    @property
    def first_date(self) -> date | None:
        return self._dates[0] if self._dates else None

    @property
    def last_date(self) -> date | None:
        return self._dates[-1] if self._dates else None

    def range(
        self,
        start: date,
        end: date,
        *,
        include_start: bool = True,
        include_end: bool = False,
    ) -> list[tuple[date, Page]]:
        """start から end までのエントリを日付昇順で返します。"""

        lo = bisect_left(self._dates, start) if include_start else bisect_right(self._dates, start)
        hi = bisect_right(self._dates, end) if include_end else bisect_left(self._dates, end)
        return [(entry_date, self._pages[entry_date]) for entry_date in self._dates[lo:hi]]

    def year_range(self, year: int) -> list[tuple[date, Page]]:
        return self.range(*year_bounds(year))

    def month_range(self, year: int, month: int) -> list[tuple[date, Page]]:
        return self.range(*month_bounds(year, month))

    def before(self, entry_date: date) -> tuple[date, Page] | None:
        """entry_date より厳密に前の最も近いエントリ。"""

        position = bisect_left(self._dates, entry_date)
        if position == 0:
            return None
        found = self._dates[position - 1]
        return found, self._pages[found]

    def after(self, entry_date: date) -> tuple[date, Page] | None:
        """entry_date より厳密に後の最も近いエントリ。"""

        position = bisect_right(self._dates, entry_date)
        if position >= len(self._dates):
            return None
        found = self._dates[position]
        return found, self._pages[found]

    def years(self) -> list[int]:
        return sorted({entry_date.year for entry_date in self._dates})

    def months(self) -> list[tuple[int, int]]:
        return sorted({(entry_date.year, entry_date.month) for entry_date in self._dates})
