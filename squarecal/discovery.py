#!/usr/bin/env python
"""
CalDAV resource discovery.

Walks from the server root to the calendar the events should go into:

1. PROPFIND / for the current-user-principal
2. PROPFIND the principal for the calendar-home-set
3. PROPFIND the calendar home (depth 1) for the calendar collections
4. pick a target calendar by name, falling back on some heuristics

The result is kept for the lifetime of the CalendarDiscovery object.
"""
import asyncio
import logging
from enum import Enum
from typing import List
from typing import Optional

from squarecal.async_davclient import AsyncDAVClient
from squarecal.lib import error
from squarecal.lib.url import URL
from squarecal.protocol.types import CalendarInfo
from squarecal.protocol.xml_builders import build_propfind_body
from squarecal.protocol.xml_parsers import find_href
from squarecal.protocol.xml_parsers import parse_calendar_list

log = logging.getLogger("squarecal")

## Collections living in the calendar home that are not user calendars
NON_USER_COLLECTIONS = ("/inbox/", "/outbox/", "/notification/")


class DiscoveryState(Enum):
    UNDISCOVERED = 0
    PRINCIPAL_KNOWN = 1
    HOME_KNOWN = 2
    CALENDARS_LISTED = 3
    TARGET_SELECTED = 4


def user_calendars(calendars: List[CalendarInfo]) -> List[CalendarInfo]:
    """drops scheduling inbox/outbox, notification collections and unnamed collections"""
    return [
        cal
        for cal in calendars
        if cal.display_name
        and cal.display_name.strip()
        and not any(marker in cal.url for marker in NON_USER_COLLECTIONS)
    ]


def select_calendar(calendars: List[CalendarInfo], calendar_name: str) -> CalendarInfo:
    """
    Select the target calendar.  The first rule giving a match wins:

    1. display name equal to calendar_name (surrounding white space ignored)
    2. calendar_name is a substring of the display name (case insensitive)
    3. display name contains "calendar" (case insensitive)
    4. display name contains "home" (case insensitive)
    5. the first user calendar

    Raises:
        DiscoveryError: if there are no user calendars at all
    """
    candidates = user_calendars(calendars)
    if not candidates:
        available = ", ".join(repr(cal.display_name) for cal in calendars) or "none"
        raise error.DiscoveryError(
            "no usable calendar collection found (available: %s)" % available
        )

    wanted = (calendar_name or "").strip()
    wanted_lower = wanted.lower()
    rules = (
        lambda name: name.strip() == wanted,
        lambda name: bool(wanted_lower) and wanted_lower in name.lower(),
        lambda name: "calendar" in name.lower(),
        lambda name: "home" in name.lower(),
    )
    for rule in rules:
        for cal in candidates:
            if rule(cal.display_name):
                return cal
    return candidates[0]


class CalendarDiscovery:
    """
    Holds the discovery state for one calendar service.

    ensure_discovered() runs the missing steps and is a no-op once a
    target calendar is selected.  Concurrent callers share one run.
    A failed run leaves nothing cached, the next call starts over.
    """

    def __init__(self, client: AsyncDAVClient, calendar_name: str) -> None:
        self.client = client
        self.calendar_name = calendar_name
        self._base_url = client.url
        self._lock: Optional[asyncio.Lock] = None
        self._reset()

    def _reset(self) -> None:
        self.state = DiscoveryState.UNDISCOVERED
        self.client.url = self._base_url
        self.principal_url: Optional[str] = None
        self.calendar_home_url: Optional[str] = None
        self.calendars: List[CalendarInfo] = []
        self.target_calendar: Optional[CalendarInfo] = None

    @property
    def is_discovered(self) -> bool:
        return self.state is DiscoveryState.TARGET_SELECTED

    async def ensure_discovered(self) -> CalendarInfo:
        if self.is_discovered:
            return self.target_calendar
        if self._lock is None:
            ## created here, inside the running loop
            self._lock = asyncio.Lock()
        async with self._lock:
            ## someone else may have finished while we were waiting
            if self.is_discovered:
                return self.target_calendar
            try:
                await self.discover_principal()
                await self.discover_calendar_home()
                await self.discover_calendars()
                self.find_target_calendar()
            except BaseException:
                self._reset()
                raise
        return self.target_calendar

    async def discover_principal(self) -> str:
        body = build_propfind_body(["current-user-principal"])
        response = await self.client.propfind("/", body, depth=0)
        self.principal_url = find_href(response, "current-user-principal")
        self.state = DiscoveryState.PRINCIPAL_KNOWN
        log.debug(f"principal: {self.principal_url}")
        return self.principal_url

    async def discover_calendar_home(self) -> str:
        body = build_propfind_body(["calendar-home-set"])
        response = await self.client.propfind(self.principal_url, body, depth=0)
        self.calendar_home_url = find_href(response, "calendar-home-set")
        home = URL.objectify(self.calendar_home_url)
        if home.hostname and home.hostname != self.client.url.hostname:
            ## icloud keeps each principal on its own named host.  All
            ## calendar paths below the home are relative to that host.
            log.debug(f"calendar home is on {home.hostname}, using it as base url")
            self.client.url = home
        self.state = DiscoveryState.HOME_KNOWN
        log.debug(f"calendar home: {self.calendar_home_url}")
        return self.calendar_home_url

    async def discover_calendars(self) -> List[CalendarInfo]:
        body = build_propfind_body(
            ["resourcetype", "displayname", "supported-calendar-component-set", "getctag"]
        )
        response = await self.client.propfind(self.calendar_home_url, body, depth=1)
        self.calendars = parse_calendar_list(response)
        self.state = DiscoveryState.CALENDARS_LISTED
        log.debug(
            "calendars found: %s" % ", ".join(repr(cal.display_name) for cal in self.calendars)
        )
        return self.calendars

    def find_target_calendar(self) -> CalendarInfo:
        self.target_calendar = select_calendar(self.calendars, self.calendar_name)
        self.state = DiscoveryState.TARGET_SELECTED
        log.info(
            f"using calendar {self.target_calendar.display_name!r} at {self.target_calendar.url}"
        )
        return self.target_calendar
