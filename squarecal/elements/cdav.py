#!/usr/bin/env python
from datetime import date
from datetime import datetime
from datetime import time
from datetime import timezone
from typing import ClassVar
from typing import Union

from .base import BaseElement
from .base import NamedBaseElement
from .base import ValuedBaseElement
from squarecal.lib.namespace import ns

utc_tz = timezone.utc


def _to_utc_date_string(ts: Union[date, datetime]) -> str:
    """coerce dates and datetimes to a UTC "date with UTC time" string
    (assume localtime if no timezone is given)"""
    if not isinstance(ts, datetime):
        ts = datetime.combine(ts, time(), tzinfo=utc_tz)
    ## ts.astimezone() treats a naive timestamp as localtime
    ts = ts.astimezone(utc_tz)
    return ts.strftime("%Y%m%dT%H%M%SZ")


# Operations
class CalendarQuery(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar-query")


# Filters
class Filter(BaseElement):
    tag: ClassVar[str] = ns("C", "filter")


class CompFilter(NamedBaseElement):
    tag: ClassVar[str] = ns("C", "comp-filter")


class TimeRange(BaseElement):
    tag: ClassVar[str] = ns("C", "time-range")

    def __init__(
        self,
        start: Union[date, datetime, None] = None,
        end: Union[date, datetime, None] = None,
    ) -> None:
        ## start and end should be an icalendar "date with UTC time",
        ## ref https://tools.ietf.org/html/rfc4791#section-9.9
        ## A missing bound is sent as an empty attribute.
        super(TimeRange, self).__init__()

        self.attributes["start"] = _to_utc_date_string(start) if start is not None else ""
        self.attributes["end"] = _to_utc_date_string(end) if end is not None else ""


# Components / Data
class CalendarData(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar-data")


# Properties
class CalendarHomeSet(BaseElement):
    tag: ClassVar[str] = ns("C", "calendar-home-set")


class SupportedCalendarComponentSet(ValuedBaseElement):
    tag: ClassVar[str] = ns("C", "supported-calendar-component-set")


# calendarserver.org extension, ref
# https://github.com/apple/ccs-calendarserver/blob/master/doc/Extensions/caldav-ctag.txt
class GetCTag(ValuedBaseElement):
    tag: ClassVar[str] = ns("CS", "getctag")
