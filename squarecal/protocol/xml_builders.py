"""
Pure functions for building CalDAV XML request bodies.

All functions in this module are pure - they take data in and return XML out,
with no side effects or I/O.
"""
from datetime import date
from typing import List
from typing import Optional

from squarecal.elements import cdav
from squarecal.elements import dav
from squarecal.elements.base import BaseElement

## Property names understood by build_propfind_body
_PROPERTIES = {
    "current-user-principal": dav.CurrentUserPrincipal,
    "calendar-home-set": cdav.CalendarHomeSet,
    "resourcetype": dav.ResourceType,
    "displayname": dav.DisplayName,
    "supported-calendar-component-set": cdav.SupportedCalendarComponentSet,
    "getctag": cdav.GetCTag,
    "getetag": dav.GetEtag,
}


def build_propfind_body(props: Optional[List[str]] = None) -> bytes:
    """
    Build PROPFIND request body XML.

    Args:
        props: List of property names to retrieve, i.e.
               ["displayname", "resourcetype"].

    Returns:
        UTF-8 encoded XML bytes

    Raises:
        KeyError: for a property name this module does not know about
    """
    prop_elements: List[BaseElement] = [_PROPERTIES[name]() for name in props or []]
    propfind = dav.Propfind() + (dav.Prop() + prop_elements)
    return propfind.to_xml()


def build_calendar_query_body(
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> bytes:
    """
    Build a calendar-query REPORT body asking for the etag and the
    calendar data of every VEVENT in a collection.

    A time-range filter is added if either bound is given.  The
    missing bound is then sent as an empty attribute value.

    Args:
        start: Start of time range filter (date or datetime)
        end: End of time range filter (date or datetime)

    Returns:
        UTF-8 encoded XML bytes
    """
    prop = dav.Prop() + [dav.GetEtag(), cdav.CalendarData()]

    vevent = cdav.CompFilter("VEVENT")
    if start is not None or end is not None:
        vevent += cdav.TimeRange(start, end)
    vcalendar = cdav.CompFilter("VCALENDAR") + vevent

    root = cdav.CalendarQuery() + [prop, cdav.Filter() + vcalendar]
    return root.to_xml()
