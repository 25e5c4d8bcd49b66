"""
Day-first numeric date parser.

Strategy:
1. Match d/m/y with '/' or '-' separators and a 2- or 4-digit year
2. Assume dd/mm (day first) and expand 2-digit years around a fixed pivot
3. Resolve against the calendar; impossible dates parse to None
4. Record the detected layout so callers can spot mixed formats
"""

import re
from datetime import date
from typing import Optional

from dateutil import parser as dateutil_parser
from pydantic import BaseModel


NUMERIC_DATE = re.compile(r"^(\d{1,2})([/\-])(\d{1,2})([/\-])(\d{2,4})$")

# Two-digit years above the pivot belong to the 1900s
TWO_DIGIT_YEAR_PIVOT = 50


class DateParseResult(BaseModel):
    parsed_date: Optional[date] = None
    raw_text: str
    format_detected: str


def describe_format(day_sep: str, year_sep: str, year_digits: int) -> str:
    """Layout label such as DD/MM/YYYY or DD-MM-YY."""
    return f"DD{day_sep}MM{year_sep}{'Y' * year_digits}"


def parse_numeric_date(raw: str) -> DateParseResult:
    """
    Parse a numeric date string, day first.
    Never raises; unparseable or impossible dates yield parsed_date=None.
    """
    raw_clean = (raw or "").strip()
    m = NUMERIC_DATE.match(raw_clean)
    if not m:
        return DateParseResult(parsed_date=None, raw_text=raw or "", format_detected="UNKNOWN")

    day_str, day_sep, month_str, year_sep, year_str = m.groups()
    unparsed = DateParseResult(
        parsed_date=None,
        raw_text=raw,
        format_detected=describe_format(day_sep, year_sep, len(year_str)),
    )

    if len(year_str) == 3:
        return unparsed

    year = int(year_str)
    if len(year_str) == 2:
        year = 1900 + year if year > TWO_DIGIT_YEAR_PIVOT else 2000 + year

    # dateutil would silently swap day and month for 05/13/2024; stay day-first
    if not (1 <= int(month_str) <= 12 and 1 <= int(day_str) <= 31):
        return unparsed

    try:
        parsed = dateutil_parser.parse(
            f"{int(day_str)}/{int(month_str)}/{year:04d}", dayfirst=True
        ).date()
    except (ValueError, OverflowError):
        return unparsed

    return unparsed.model_copy(update={"parsed_date": parsed})


def is_weekend(value: Optional[date]) -> bool:
    return value is not None and value.weekday() >= 5
