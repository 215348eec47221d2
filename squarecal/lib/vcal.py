#!/usr/bin/env python
"""
Translation between CalendarEvent objects and RFC 5545 icalendar text.

Only the flat subset of VEVENT used by the sync is covered: one event
per VCALENDAR, no recurrence, no attendees.  Date values are handed to
the icalendar library for parsing.
"""
import logging
import re
import secrets
import time
from datetime import date
from datetime import datetime
from datetime import timezone
from typing import Dict
from typing import List
from typing import Optional
from typing import Union
from zoneinfo import ZoneInfo
from zoneinfo import ZoneInfoNotFoundError

from icalendar import vDate
from icalendar import vDatetime

from squarecal.elements.cdav import _to_utc_date_string
from squarecal.lib.python_utilities import to_normal_str
from squarecal.protocol.types import CalendarEvent

PRODID = "-//Square Cal Sync//EN"
EXTERNAL_REF_KEY = "X-SQUARE-ID"
UID_DOMAIN = "squarecalsync.local"

log = logging.getLogger("squarecal")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

## Order matters: the backslash must be doubled before any escape
## sequence is introduced.
_ESCAPES = (
    ("\\", "\\\\"),
    (";", "\\;"),
    (",", "\\,"),
    ("\n", "\\n"),
    ("\r", "\\r"),
)
_UNESCAPES = {"\\": "\\", ";": ";", ",": ",", "n": "\n", "N": "\n", "r": "\r"}
_unescape_re = re.compile(r"\\([\\;,nNr])")

## RFC 5545 section 3.1: a line starting with white space continues the
## previous one
_unfold_re = re.compile(r"\r?\n[ \t]")


def escape_text(text: str) -> str:
    for char, escaped in _ESCAPES:
        text = text.replace(char, escaped)
    return text


def unescape_text(text: str) -> str:
    ## one left-to-right pass, so that an escaped backslash followed by
    ## "n" is not mistaken for an escaped newline
    return _unescape_re.sub(lambda m: _UNESCAPES[m.group(1)], text)


def generate_uid() -> str:
    """
    square-<epoch milliseconds>-<9 random base36 characters>@squarecalsync.local
    """
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return "square-%d-%s@%s" % (int(time.time() * 1000), suffix, UID_DOMAIN)


def _format_date(value: Union[date, datetime]) -> str:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        value = value.date()
    return vDate(value).to_ical().decode("ascii")


def _date_line(key: str, value: Union[date, datetime], all_day: bool) -> str:
    if all_day:
        return "%s;VALUE=DATE:%s" % (key, _format_date(value))
    return "%s:%s" % (key, _to_utc_date_string(value))


def create_ical(event: CalendarEvent, uid: str) -> str:
    """
    Serialize an event as a VCALENDAR holding exactly one VEVENT.

    Timestamps are converted to UTC.  All-day events get date-only
    DTSTART/DTEND values with a VALUE=DATE parameter.  Lines are CRLF
    terminated.
    """
    if event.start_date is None or event.end_date is None:
        raise ValueError("an event needs both start_date and end_date")
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        "PRODID:%s" % PRODID,
        "BEGIN:VEVENT",
        "UID:%s" % uid,
        "DTSTAMP:%s" % _to_utc_date_string(datetime.now(timezone.utc)),
        _date_line("DTSTART", event.start_date, event.all_day),
        _date_line("DTEND", event.end_date, event.all_day),
        "SUMMARY:%s" % escape_text(event.title),
    ]
    if event.description:
        lines.append("DESCRIPTION:%s" % escape_text(event.description))
    if event.location:
        lines.append("LOCATION:%s" % escape_text(event.location))
    if event.external_ref:
        lines.append("%s:%s" % (EXTERNAL_REF_KEY, event.external_ref))
    lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return "\r\n".join(lines)


def parse_ical_date(value: str, tzid: Optional[str] = None) -> Union[date, datetime]:
    """
    YYYYMMDD gives a date.  Anything else is read as a UTC timestamp,
    YYYYMMDDThhmmssZ, unless a TZID parameter says otherwise.

    Raises:
        ValueError: if the value is neither
    """
    value = value.strip()
    if len(value) == 8:
        return vDate.from_ical(value)
    if tzid and not value.endswith("Z"):
        try:
            tz = ZoneInfo(tzid)
        except (ZoneInfoNotFoundError, ValueError):
            log.warning(f"unknown TZID {tzid!r}, reading {value} as UTC")
        else:
            return vDatetime.from_ical(value).replace(tzinfo=tz).astimezone(timezone.utc)
    if not value.endswith("Z"):
        value += "Z"
    return vDatetime.from_ical(value)


def _params(key: str) -> Dict[str, str]:
    ret = {}
    for param in key.split(";")[1:]:
        name, _, pvalue = param.partition("=")
        ret[name.strip().upper()] = pvalue.strip().strip('"')
    return ret


def parse_ical(data: Union[str, bytes]) -> CalendarEvent:
    """
    Parse the first VEVENT found in some icalendar data.

    Lines are split on the first colon into KEY[;PARAMS] and VALUE.
    Properties of nested components (VALARM) or of a VTIMEZONE are
    ignored, and so are properties this module does not know about.

    Raises:
        ValueError: on unparseable DTSTART/DTEND values
    """
    data = _unfold_re.sub("", to_normal_str(data))
    fields: Dict[str, object] = {"title": "", "all_day": False}
    components: List[str] = []
    seen_event = False

    for line in data.split("\n"):
        line = line.rstrip("\r")
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        value = value.strip()
        name = key.split(";", 1)[0].strip().upper()

        if name == "BEGIN":
            if seen_event and value.upper() == "VEVENT":
                ## only the first VEVENT is of interest
                break
            components.append(value.upper())
            continue
        if name == "END":
            if components:
                ended = components.pop()
                if ended == "VEVENT":
                    seen_event = True
            continue
        if components and components[-1] not in ("VEVENT", "VCALENDAR"):
            continue

        if name == "UID":
            fields["id"] = value
        elif name == "SUMMARY":
            fields["title"] = unescape_text(value)
        elif name == "DESCRIPTION":
            fields["description"] = unescape_text(value)
        elif name == "LOCATION":
            fields["location"] = unescape_text(value)
        elif name == EXTERNAL_REF_KEY:
            fields["external_ref"] = value
        elif name.startswith("DTSTART"):
            params = _params(key)
            fields["start_date"] = parse_ical_date(value, params.get("TZID"))
            fields["all_day"] = params.get("VALUE", "").upper() == "DATE"
        elif name.startswith("DTEND"):
            params = _params(key)
            fields["end_date"] = parse_ical_date(value, params.get("TZID"))

    return CalendarEvent(**fields)


def parse_ical_many(data: Union[str, bytes]) -> List[CalendarEvent]:
    """
    Parse every VEVENT in some icalendar data, in order of appearance.
    No VEVENT gives an empty list.
    """
    data = to_normal_str(data)
    events = []
    for block in data.split("BEGIN:VEVENT")[1:]:
        fragment = "BEGIN:VEVENT" + block.split("END:VEVENT")[0] + "END:VEVENT"
        events.append(parse_ical(fragment))
    return events
