"""Month windows over the monthly sales facts.

Two selection rules coexist:
- coarse: a caller-supplied [debut, fin] range. Within a single year the
  months are bounded; across years every month of every year in
  [year_start, year_end] is selected (boundary months are not trimmed).
- exact: boundary years are trimmed to the boundary months. Used for the
  trailing windows of the margin and stock analyses.

NO DATA ACCESS - pure functions only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

MONTH_NAMES_FR = (
    "Janvier",
    "Février",
    "Mars",
    "Avril",
    "Mai",
    "Juin",
    "Juillet",
    "Août",
    "Septembre",
    "Octobre",
    "Novembre",
    "Décembre",
)


def month_key(year: int, month: int) -> str:
    """Format a (year, month) pair as "YYYY-MM"."""
    return f"{year:04d}-{month:02d}"


def month_name(month: int) -> str:
    """French name of a calendar month (1..12)."""
    return MONTH_NAMES_FR[month - 1]


@dataclass(frozen=True)
class MonthWindow:
    """Inclusive (year, month) window.

    Attributes:
        year_start: First year of the window
        month_start: First month of the window (1..12)
        year_end: Last year of the window
        month_end: Last month of the window (1..12)
        exact: Trim boundary years to the boundary months even when the
            window spans several years

    """

    year_start: int
    month_start: int
    year_end: int
    month_end: int
    exact: bool = False

    @classmethod
    def from_dates(cls, debut: date, fin: date) -> MonthWindow:
        """Coarse window of a caller-supplied date range."""
        return cls(debut.year, debut.month, fin.year, fin.month)

    @classmethod
    def trailing(cls, now: date | datetime, months: int = 12) -> MonthWindow:
        """Exact window from `months` months before `now` up to the month of `now`.

        Both boundary months are included, so a 12-month trailing window
        holds 13 calendar months (e.g. 2024-03 .. 2025-03).

        Examples:
            >>> MonthWindow.trailing(date(2025, 3, 15))
            MonthWindow(year_start=2024, month_start=3, year_end=2025, month_end=3, exact=True)

        """
        index = now.year * 12 + (now.month - 1) - months
        return cls(index // 12, index % 12 + 1, now.year, now.month, exact=True)

    @classmethod
    def years(cls, first_year: int, last_year: int) -> MonthWindow:
        """Every month of every year in [first_year, last_year]."""
        return cls(first_year, 1, last_year, 12, exact=True)

    @property
    def single_year(self) -> bool:
        return self.year_start == self.year_end

    def contains(self, year: int, month: int) -> bool:
        """Check whether (year, month) is selected by this window."""
        if self.single_year:
            return year == self.year_start and self.month_start <= month <= self.month_end
        if not self.exact:
            return self.year_start <= year <= self.year_end
        if year == self.year_start:
            return month >= self.month_start
        if year == self.year_end:
            return month <= self.month_end
        return self.year_start < year < self.year_end

    def label(self) -> dict[str, str]:
        """Human-readable bounds echoed back in results."""
        return {
            "debut": month_key(self.year_start, self.month_start),
            "fin": month_key(self.year_end, self.month_end),
        }
