import re
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from tourbook.utils.timeutils import to_naive_utc

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
TIME_PATTERN = re.compile(r'^\d{2}:\d{2}(:\d{2})?$')

MAX_NOTE_LENGTH = 500

UTC_NAMES = ('UTC', 'Etc/UTC', 'Z')


def get_zone(name):
    if not name or name in UTC_NAMES:
        return timezone.utc
    return ZoneInfo(name)


def validate_timezone(name):
    """Check that a timezone is a known IANA name"""
    if not name:
        return False
    try:
        get_zone(name)
        return True
    except (ZoneInfoNotFoundError, ValueError, TypeError, OSError):
        return False


def parse_tour_datetime(date, time, tz_name=None):
    """Combine a YYYY-MM-DD date and HH:MM time into a naive UTC datetime.

    The wall-clock value is read in ``tz_name`` (UTC when omitted). Returns
    None when either part is malformed or names an impossible date.
    """
    date = str(date or '').strip()
    time = str(time or '').strip()
    if not DATE_PATTERN.match(date) or not TIME_PATTERN.match(time):
        return None

    fmt = '%Y-%m-%dT%H:%M:%S' if time.count(':') == 2 else '%Y-%m-%dT%H:%M'
    try:
        local = datetime.strptime(f'{date}T{time}', fmt)
    except ValueError:
        return None

    if not validate_timezone(tz_name or 'UTC'):
        return None

    return to_naive_utc(local.replace(tzinfo=get_zone(tz_name)))


def parse_iso_timestamp(value):
    """Parse an ISO-8601 timestamp into a naive UTC datetime, or None.

    Timestamps without an offset are taken as UTC.
    """
    if not value or not isinstance(value, str):
        return None

    candidate = value.strip()
    if candidate.endswith('Z') or candidate.endswith('z'):
        candidate = candidate[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None

    return to_naive_utc(parsed)


def validate_note(text):
    """Notes and cancellation reasons are capped at 500 characters"""
    return text is None or (isinstance(text, str) and len(text) <= MAX_NOTE_LENGTH)
