"""
Sans-I/O CalDAV protocol helpers.

This package builds request bodies and parses response bodies as pure data
transformations; the HTTP round trips live in squarecal.async_davclient.

- types: Core data structures (events, calendars, query results)
- xml_builders: Pure functions to build XML request bodies
- xml_parsers: Pure functions to parse XML response bodies
"""

from .types import (
    CalendarCredentials,
    CalendarEvent,
    CalendarInfo,
    CalendarQueryResult,
    DAVMethod,
)
from .xml_builders import (
    build_calendar_query_body,
    build_propfind_body,
)
from .xml_parsers import (
    find_href,
    parse_calendar_list,
    parse_calendar_query_response,
)

__all__ = [
    # Types
    "CalendarCredentials",
    "CalendarEvent",
    "CalendarInfo",
    "CalendarQueryResult",
    "DAVMethod",
    # XML Builders
    "build_calendar_query_body",
    "build_propfind_body",
    # XML Parsers
    "find_href",
    "parse_calendar_list",
    "parse_calendar_query_response",
]
