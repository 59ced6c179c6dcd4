"""Calendar month values and the MM-YYYY wire format.

A month is the finest date precision the subscription domain knows about.
Values order by (year, month) and convert to the first day of the month when
they have to be stored as a date.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from subcost.business.subscription.errors import FormatError


_MONTH_TEXT_RE = re.compile(r"(0[1-9]|1[0-2])-([0-9]{4})")

MIN_YEAR = 1
MAX_YEAR = 9999


@dataclass(frozen=True, slots=True, order=True)
class MonthValue:
    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be within 1..12, got {self.month}")
        if not MIN_YEAR <= self.year <= MAX_YEAR:
            raise ValueError(f"year must be within {MIN_YEAR}..{MAX_YEAR}, got {self.year}")

    @classmethod
    def parse(cls, text: str) -> MonthValue:
        match = _MONTH_TEXT_RE.fullmatch(text) if isinstance(text, str) else None
        if match is None:
            raise FormatError(str(text))
        year = int(match.group(2))
        if year < MIN_YEAR:
            raise FormatError(text, "year out of range")
        return cls(year=year, month=int(match.group(1)))

    @classmethod
    def from_date(cls, value: date) -> MonthValue:
        return cls(year=value.year, month=value.month)

    @classmethod
    def from_index(cls, index: int) -> MonthValue:
        year, month_zero = divmod(index, 12)
        return cls(year=year, month=month_zero + 1)

    def format(self) -> str:
        return f"{self.month:02d}-{self.year:04d}"

    def to_date(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def index(self) -> int:
        """Linear month number; consecutive months differ by one."""
        return self.year * 12 + (self.month - 1)

    def __str__(self) -> str:
        return self.format()


def parse_month(text: str) -> MonthValue:
    return MonthValue.parse(text)


def format_month(value: MonthValue) -> str:
    return value.format()


def months_between(start: MonthValue, end: MonthValue) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)
