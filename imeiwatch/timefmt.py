"""
imeiwatch/timefmt.py
Wall-clock rendering of the service's UTC timestamps.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

BRASILIA = 'America/Sao_Paulo'
CHINA    = 'Asia/Shanghai'
DISPLAY_FORMAT = '%Y-%m-%d %H:%M:%S'


def parse_utc(value: str) -> Optional[datetime]:
    """ISO-8601 or 'YYYY-MM-DD HH:MM:SS'. Naive values are read as UTC."""
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Unparseable timestamp: {value!r}")
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_timezone(value: Optional[str], tz_name: str) -> str:
    """Empty string for missing or unparseable timestamps."""
    if not value:
        return ''
    dt = parse_utc(value)
    if dt is None:
        return ''
    return dt.astimezone(ZoneInfo(tz_name)).strftime(DISPLAY_FORMAT)


def to_brasilia(value: Optional[str]) -> str:
    return to_timezone(value, BRASILIA)


def to_china(value: Optional[str]) -> str:
    return to_timezone(value, CHINA)
