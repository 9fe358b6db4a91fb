"""
Capture-Time Extraction

Pure helpers that recover an image's capture instant from URLs, HTTP date
headers and directory-listing filenames. All components are UTC. Every parser
returns None when nothing matches or the decoded date is invalid.

Supported URL shapes:
    .../GOES19_20250812-2310.jpg          YYYYMMDD[-_]HHMM[SS].ext
    .../GOES18-20250812231045_full.jpg    YYYYMMDD[-_]HHMMSS...ext
    .../2025/225/name-235959.jpg          /YYYY/DDD/...-HHMMSS.ext
Directory listings use an 11-digit YYYYDDDHHMM stamp.
"""

import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional, Tuple

_EXT = r"\.(?:jpg|png|jpeg)"

_DATE_TIME_AT_END = re.compile(r"(\d{8})[-_]?(\d{4})(\d{2})?" + _EXT + r"(\?.*)?$", re.IGNORECASE)
_DATE_TIME_IN_NAME = re.compile(r"(\d{8})[-_]?(\d{4})(\d{2})?[^/]*" + _EXT, re.IGNORECASE)
_SPLIT_DATE_TIME = re.compile(
    r"(\d{4})(\d{2})(\d{2})[_-]?(\d{2})(\d{2})(\d{2})?[^/]*" + _EXT, re.IGNORECASE
)
_DAY_OF_YEAR_PATH = re.compile(
    r"/(\d{4})/(\d{3})/.*?[-_](\d{2})(\d{2})(\d{2})?" + _EXT, re.IGNORECASE
)
_DAY_OF_YEAR_STAMP = re.compile(r"^\d{11}$")


def date_from_day_of_year(year: int, day_of_year: int) -> Tuple[int, int, int]:
    """
    Convert an ordinal day into a calendar date.

    Args:
        year: Calendar year
        day_of_year: 1-based day of the year (day 60 of a leap year is Feb 29)

    Returns:
        Tuple of (year, month, day)
    """
    dt = datetime(year, 1, 1) + timedelta(days=day_of_year - 1)
    return dt.year, dt.month, dt.day


def _utc(year, month, day, hour, minute, second) -> Optional[datetime]:
    try:
        return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError:
        return None


def _from_day_of_year(year, day_of_year, hour, minute, second) -> Optional[datetime]:
    if not 1 <= day_of_year <= 366:
        return None
    try:
        y, m, d = date_from_day_of_year(year, day_of_year)
    except (ValueError, OverflowError):
        return None
    return _utc(y, m, d, hour, minute, second)


def parse_timestamp_from_url(url: str) -> Optional[datetime]:
    """Extract a capture instant embedded in an image URL."""
    if not url:
        return None

    m = _DATE_TIME_AT_END.search(url) or _DATE_TIME_IN_NAME.search(url)
    if m:
        date, hhmm, seconds = m.group(1), m.group(2), m.group(3)
        return _utc(int(date[0:4]), int(date[4:6]), int(date[6:8]),
                    int(hhmm[0:2]), int(hhmm[2:4]), int(seconds) if seconds else 0)

    m = _SPLIT_DATE_TIME.search(url)
    if m:
        y, mo, d, hh, mm, ss = m.groups()
        return _utc(int(y), int(mo), int(d), int(hh), int(mm), int(ss) if ss else 0)

    m = _DAY_OF_YEAR_PATH.search(url)
    if m:
        y, doy, hh, mm, ss = m.groups()
        return _from_day_of_year(int(y), int(doy), int(hh), int(mm), int(ss) if ss else 0)

    return None


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC 7231 date header (e.g. ``Last-Modified``) as UTC."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_day_of_year_stamp(stamp: str) -> Optional[datetime]:
    """Decode a ``YYYYDDDHHMM`` filename stamp."""
    if not stamp or not _DAY_OF_YEAR_STAMP.match(stamp):
        return None
    return _from_day_of_year(int(stamp[0:4]), int(stamp[4:7]),
                             int(stamp[7:9]), int(stamp[9:11]), 0)


def is_valid_timestamp(value) -> bool:
    return isinstance(value, datetime)
