"""Calendar export for scheduled tours.

Builds a single-event iCalendar document and a Google Calendar template
link from a tour and its property.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode
from tourbook.utils.timeutils import to_naive_utc, utcnow

DEFAULT_DURATION_MINUTES = 30
PRODUCT_ID = '-//Tourbook//Property Tours//EN'
EVENT_DESCRIPTION = 'Property viewing appointment scheduled through Tourbook'
GOOGLE_CALENDAR_URL = 'https://calendar.google.com/calendar/render'


@dataclass(frozen=True)
class CalendarEvent:
    start: datetime
    end: datetime
    summary: str
    description: str
    location: Optional[str] = None
    url: Optional[str] = None
    uid: Optional[str] = None


def format_ics_datetime(value):
    return to_naive_utc(value).strftime('%Y%m%dT%H%M%SZ')


def escape_ics_text(text):
    """Backslash-escape the characters iCalendar text values reserve"""
    text = str(text)
    for char in ('\\', ',', ';'):
        text = text.replace(char, '\\' + char)
    return text.replace('\r\n', '\\n').replace('\n', '\\n')


def create_tour_calendar_event(title, scheduled_at, location=None, duration=None, tour_id=None, url=None):
    start = to_naive_utc(scheduled_at)
    end = start + timedelta(minutes=duration or DEFAULT_DURATION_MINUTES)
    return CalendarEvent(
        start=start,
        end=end,
        summary=f'Property Tour: {title}',
        description=EVENT_DESCRIPTION,
        location=location or None,
        url=url,
        uid=f'tour-{tour_id}@tourbook' if tour_id else None,
    )


def event_for_tour(tour, duration=None):
    """Calendar event for a tour, located at its property when known"""
    prop = tour.property
    title = prop.title if prop else 'Property'
    location = None
    if prop:
        location = ', '.join(part for part in (prop.address, prop.city) if part) or None
    return create_tour_calendar_event(
        title, tour.scheduled_at, location=location, duration=duration, tour_id=tour.id,
    )


def generate_ics(event, stamp=None):
    lines = [
        'BEGIN:VCALENDAR',
        'VERSION:2.0',
        f'PRODID:{PRODUCT_ID}',
        'CALSCALE:GREGORIAN',
        'METHOD:PUBLISH',
        'BEGIN:VEVENT',
    ]
    if event.uid:
        lines.append(f'UID:{event.uid}')
        lines.append(f'DTSTAMP:{format_ics_datetime(stamp or utcnow())}')
    lines += [
        f'DTSTART:{format_ics_datetime(event.start)}',
        f'DTEND:{format_ics_datetime(event.end)}',
        f'SUMMARY:{escape_ics_text(event.summary)}',
        f'DESCRIPTION:{escape_ics_text(event.description)}',
    ]
    if event.location:
        lines.append(f'LOCATION:{escape_ics_text(event.location)}')
    if event.url:
        lines.append(f'URL:{event.url}')
    lines += ['END:VEVENT', 'END:VCALENDAR']

    return '\r\n'.join(lines) + '\r\n'


def google_calendar_url(event):
    params = {
        'action': 'TEMPLATE',
        'text': event.summary,
        'details': event.description,
        'dates': f'{format_ics_datetime(event.start)}/{format_ics_datetime(event.end)}',
    }
    if event.location:
        params['location'] = event.location
    return f'{GOOGLE_CALENDAR_URL}?{urlencode(params)}'
