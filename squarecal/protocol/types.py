"""
Core data types shared by the codec, the protocol layer and the
calendar service.

These dataclasses carry data only; none of them does any I/O.
"""

from dataclasses import dataclass
from dataclasses import field
from datetime import date
from datetime import datetime
from enum import Enum
from typing import Optional
from typing import Union

DateOrDatetime = Union[date, datetime]

DEFAULT_CALENDAR_NAME = "Square Appointments"


class DAVMethod(Enum):
    """WebDAV/CalDAV HTTP methods used by the client."""

    GET = "GET"
    PUT = "PUT"
    DELETE = "DELETE"
    PROPFIND = "PROPFIND"
    REPORT = "REPORT"


@dataclass
class CalendarEvent:
    """
    A single, non-recurring calendar event.

    Attributes:
        title: Display text (SUMMARY)
        start_date: Start as a datetime, or a date for all-day events
        end_date: End as a datetime, or a date for all-day events
        id: UID of the event; assigned when the event is created
        description: Free text (DESCRIPTION)
        location: Free text (LOCATION)
        all_day: True if start_date/end_date carry no time of day
        external_ref: Reference to the originating booking (X-SQUARE-ID)
    """

    title: str
    start_date: Optional[DateOrDatetime] = None
    end_date: Optional[DateOrDatetime] = None
    id: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    all_day: bool = False
    external_ref: Optional[str] = None


@dataclass
class CalendarInfo:
    """
    A calendar collection found during discovery.

    Attributes:
        url: Collection path, used as prefix for event resource paths
        display_name: Display name of the collection (may be empty)
        ctag: Opaque change tag of the collection
        is_calendar: True if the resourcetype carries the CalDAV calendar marker
    """

    url: str
    display_name: str = ""
    ctag: Optional[str] = None
    is_calendar: bool = False


@dataclass
class CalendarQueryResult:
    """
    Parsed result of a calendar-query REPORT for a single object.

    Attributes:
        href: URL/path of the calendar object
        etag: ETag of the object
        calendar_data: iCalendar data as string
    """

    href: str
    etag: Optional[str] = None
    calendar_data: Optional[str] = None


@dataclass(frozen=True)
class CalendarCredentials:
    """
    Connection parameters for the CalDAV server.

    Attributes:
        account_id: Username (for iCloud, the Apple ID)
        secret: Password (for iCloud, an app specific password)
        server_url: Base URL of the CalDAV server
        calendar_name: Display name, or part of it, of the target calendar
    """

    account_id: str
    secret: str = field(repr=False)
    server_url: str
    calendar_name: str = DEFAULT_CALENDAR_NAME
