"""UTC offset lookup for civil (wall-clock) times in named timezones."""
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Outlook/Exchange feeds use Windows zone names in TZID
WINDOWS_TZ_MAP = {
    'Pacific Standard Time': 'America/Los_Angeles',
    'Mountain Standard Time': 'America/Denver',
    'Central Standard Time': 'America/Chicago',
    'Eastern Standard Time': 'America/New_York',
    'US Eastern Standard Time': 'America/Indiana/Indianapolis',
    'Alaskan Standard Time': 'America/Anchorage',
    'Hawaiian Standard Time': 'Pacific/Honolulu',
    'Arizona Standard Time': 'America/Phoenix',
    'GMT Standard Time': 'Europe/London',
    'Central European Standard Time': 'Europe/Warsaw',
    'W. Europe Standard Time': 'Europe/Berlin',
    'Romance Standard Time': 'Europe/Paris',
    'China Standard Time': 'Asia/Shanghai',
    'Tokyo Standard Time': 'Asia/Tokyo',
    'India Standard Time': 'Asia/Kolkata',
    'AUS Eastern Standard Time': 'Australia/Sydney',
    'UTC': 'UTC',
}


@lru_cache(maxsize=64)
def get_zone(name: Optional[str]) -> Optional[tzinfo]:
    """
    Look up a timezone by IANA or Windows name.

    Args:
        name: Zone name, possibly a Windows display name

    Returns:
        tzinfo, or None if the name is empty or unknown
    """
    if not name:
        return None
    name = name.strip()
    candidate = WINDOWS_TZ_MAP.get(name, name)
    try:
        return ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.debug(f"Unknown timezone '{name}': {e}")
        return None


def to_millis(moment: datetime) -> int:
    """Milliseconds since the epoch for an aware datetime."""
    return (moment - EPOCH) // timedelta(milliseconds=1)


def from_millis(millis: int) -> datetime:
    """Aware UTC datetime for milliseconds since the epoch."""
    return EPOCH + timedelta(milliseconds=millis)


def wall_clock_millis(civil: datetime) -> int:
    """Read a naive civil datetime as if it were UTC."""
    return to_millis(civil.replace(tzinfo=timezone.utc))


def offset_of(utc_millis: int, zone: Union[str, tzinfo]) -> int:
    """
    UTC offset in milliseconds in effect in ``zone`` at ``utc_millis``.

    The instant is rendered to wall-clock fields in the zone and those fields
    are read back as UTC; the difference is the offset (negative west of
    Greenwich). Subtracting it from naively-UTC wall-clock milliseconds
    gives the true instant.
    """
    if isinstance(zone, str):
        zone = get_zone(zone) or timezone.utc
    provisional = from_millis(utc_millis)
    rendered = provisional.astimezone(zone).replace(tzinfo=timezone.utc)
    return to_millis(rendered) - utc_millis


def resolve_civil(civil: datetime, zone: tzinfo) -> datetime:
    """
    Convert a naive wall-clock datetime in ``zone`` to an aware UTC datetime.

    The offset is read once at the naive instant and once more at the
    corrected instant, so the result carries the offset actually in effect.
    A wall time repeated by a fall-back transition resolves to its first
    (daylight) occurrence; a wall time skipped by spring-forward resolves
    one transition-width earlier (02:30 becomes 01:30 standard time).
    """
    naive_millis = wall_clock_millis(civil)
    first_guess = naive_millis - offset_of(naive_millis, zone)
    offset = offset_of(first_guess, zone)
    return from_millis(naive_millis - offset)
