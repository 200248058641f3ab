# timezone.py
from __future__ import annotations

import logging
from typing import Optional, Tuple

import pandas as pd

logger = logging.getLogger(__name__)

CONNECTION_TIME_FORMAT = "%Y%m%d %H:%M:%S"

# Abbreviations the gateway reports that are not IANA keys themselves.
_ABBREVIATIONS = {
    "PST": "America/Los_Angeles",
    "PDT": "America/Los_Angeles",
    "MST": "America/Denver",
    "MDT": "America/Denver",
    "CST": "America/Chicago",
    "CDT": "America/Chicago",
    "EST": "America/New_York",
    "EDT": "America/New_York",
    "GMT": "Europe/London",
    "BST": "Europe/London",
    "CET": "Europe/Berlin",
    "CEST": "Europe/Berlin",
    "MET": "Europe/Berlin",
    "EET": "Europe/Helsinki",
    "JST": "Asia/Tokyo",
    "HKT": "Asia/Hong_Kong",
    "IST": "Asia/Kolkata",
    "AEST": "Australia/Sydney",
    "AEDT": "Australia/Sydney",
    "UTC": "UTC",
}

_SHANGHAI = "Asia/Shanghai"
_CHINESE_NAMES = {"中国标准时间", "北京时间", "China Standard Time"}


def _is_valid(name: str) -> bool:
    try:
        pd.Timestamp("2000-01-01").tz_localize(name)
    except (KeyError, ValueError, TypeError):
        return False
    return True


def find_timezone(name: str) -> Optional[str]:
    """Map a gateway time zone name to an IANA name, or ``None`` when unknown.

    Besides IANA keys and common abbreviations, Chinese installs report the
    zone by localized or Windows name; if their GB2312 bytes were decoded
    with replacement characters the text contains U+FFFD.
    """
    name = (name or "").strip()
    if not name:
        return None
    if name in _CHINESE_NAMES or "�" in name:
        return _SHANGHAI
    mapped = _ABBREVIATIONS.get(name.upper(), name)
    return mapped if _is_valid(mapped) else None


def parse_connection_time(text: str) -> Tuple[Optional[pd.Timestamp], Optional[str]]:
    """Parse ``"YYYYMMDD HH:MM:SS <zone>"``; returns ``(timestamp, tz_name)``.

    Never raises. An unknown zone gives ``(None, None)``; a zone with a bad
    date gives ``(None, tz_name)``.
    """
    parts = (text or "").split(" ", 2)
    if len(parts) < 3:
        logger.warning("could not parse connection time from %r", text)
        return None, None

    tz_name = find_timezone(parts[2])
    if tz_name is None:
        logger.error("time zone not found for %r", parts[2])
        return None, None

    date_str = f"{parts[0]} {parts[1]}"
    try:
        naive = pd.to_datetime(date_str, format=CONNECTION_TIME_FORMAT)
    except (ValueError, TypeError) as e:
        logger.warning("could not parse connection time from %r: %s", date_str, e)
        return None, tz_name

    zoned = naive.tz_localize(tz_name, ambiguous="NaT", nonexistent="NaT")
    if pd.isna(zoned):
        logger.warning("error setting time zone %s on %s", tz_name, date_str)
        return None, tz_name
    return zoned, tz_name
