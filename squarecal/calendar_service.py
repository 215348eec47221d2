#!/usr/bin/env python
"""
The calendar service: add, update, delete, fetch and list events in
the CalDAV calendar selected by discovery.

Events are stored as <calendar collection url><uid>.ics.
"""
import logging
import sys
from datetime import date
from types import TracebackType
from typing import List
from typing import Optional
from typing import Union

from squarecal.async_davclient import AsyncDAVClient
from squarecal.discovery import CalendarDiscovery
from squarecal.lib import error
from squarecal.lib import vcal
from squarecal.protocol.types import CalendarCredentials
from squarecal.protocol.types import CalendarEvent
from squarecal.protocol.types import CalendarInfo
from squarecal.protocol.xml_builders import build_calendar_query_body
from squarecal.protocol.xml_parsers import parse_calendar_query_response

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

log = logging.getLogger("squarecal")


def event_url(calendar: CalendarInfo, uid: str) -> str:
    """<calendar collection url><uid>.ics"""
    base = calendar.url if calendar.url.endswith("/") else calendar.url + "/"
    return "%s%s.ics" % (base, uid)


class CalendarService:
    """
    Usage:
        async with CalendarService(credentials) as service:
            uid = await service.add_event(event)
            event = await service.get_event(uid)

    Discovery happens on the first event operation and is cached for
    the lifetime of the object.  Not meant to be shared between
    unrelated tasks; create one service per logical caller.
    """

    def __init__(
        self,
        credentials: CalendarCredentials,
        client: Optional[AsyncDAVClient] = None,
        timeout: Optional[Union[int, float]] = None,
    ) -> None:
        self.credentials = credentials
        self.client = client if client is not None else AsyncDAVClient(credentials, timeout=timeout)
        self.discovery = CalendarDiscovery(self.client, credentials.calendar_name)

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        await self.close()

    async def close(self) -> None:
        await self.client.close()

    @property
    def target_calendar(self) -> Optional[CalendarInfo]:
        return self.discovery.target_calendar

    async def calendars(self) -> List[CalendarInfo]:
        """All collections found in the calendar home"""
        await self.discovery.ensure_discovered()
        return self.discovery.calendars

    async def _event_url(self, uid: str) -> str:
        calendar = await self.discovery.ensure_discovered()
        return event_url(calendar, uid)

    async def add_event(self, event: CalendarEvent) -> str:
        """
        Create a new event.  A fresh UID is generated; any id set on the
        event is ignored.  The PUT carries If-None-Match: * so an
        existing resource is never overwritten.

        Returns:
            the UID of the new event
        """
        calendar = await self.discovery.ensure_discovered()
        uid = vcal.generate_uid()
        url = event_url(calendar, uid)
        await self.client.put(
            url, vcal.create_ical(event, uid), headers={"If-None-Match": "*"}
        )
        log.info(f"created event {uid}")
        return uid

    async def update_event(self, uid: str, event: CalendarEvent) -> None:
        """Overwrite the event with the given UID"""
        url = await self._event_url(uid)
        await self.client.put(url, vcal.create_ical(event, uid))
        log.info(f"updated event {uid}")

    async def delete_event(self, uid: str) -> None:
        url = await self._event_url(uid)
        await self.client.delete(url)
        log.info(f"deleted event {uid}")

    async def get_event(self, uid: str) -> Optional[CalendarEvent]:
        """
        Fetch one event.

        Returns:
            the event, or None if the server answers 404

        Raises:
            TransportError: for any other non-success status
        """
        url = await self._event_url(uid)
        try:
            data = await self.client.get(url)
        except error.TransportError as err:
            if err.not_found:
                log.debug(f"event {uid} not found")
                return None
            raise
        return vcal.parse_ical(data)

    async def list_events(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[CalendarEvent]:
        """
        List the events in the target calendar, optionally limited to a
        time range, in the order the server returns them.

        Responses without a VEVENT are skipped.  A response that can't
        be parsed is logged and skipped.
        """
        calendar = await self.discovery.ensure_discovered()
        body = build_calendar_query_body(start_date, end_date)
        response = await self.client.report(calendar.url, body, depth=1)

        events = []
        for result in parse_calendar_query_response(response):
            if not result.calendar_data or "BEGIN:VEVENT" not in result.calendar_data:
                continue
            try:
                events.append(vcal.parse_ical(result.calendar_data))
            except ValueError:
                log.error(
                    f"could not parse calendar data at {result.href}, skipping it",
                    exc_info=True,
                )
        return events
